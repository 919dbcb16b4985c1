from __future__ import annotations

import logging
from dataclasses import dataclass

import requests

from mkch_client.api import MkchClient, MkchFetcher
from mkch_client.config import AppConfig
from mkch_client.network import ReachabilityMonitor, SocketPathProbe
from mkch_client.storage import CacheSweeper, ResponseCache, SettingsStore

logger = logging.getLogger(__name__)


@dataclass
class ClientContext:
    """The one cache, monitor and fetcher wired together for a process."""

    config: AppConfig
    settings: SettingsStore
    cache: ResponseCache
    reachability: ReachabilityMonitor
    sweeper: CacheSweeper
    fetcher: MkchFetcher

    def start(self) -> None:
        self.sweeper.start()
        self.reachability.start()

    def close(self) -> None:
        self.reachability.stop()
        self.sweeper.stop()


def build_context(
    config: AppConfig,
    *,
    session: requests.Session | None = None,
    probe: bool | None = None,
) -> ClientContext:
    settings = SettingsStore(config.settings_path)
    cache = ResponseCache.open(config.cache.directory)

    use_probe = config.network.probe_enabled if probe is None else probe
    path_probe = None
    if use_probe:
        path_probe = SocketPathProbe(
            config.network.probe_host,
            config.network.probe_port,
            interval_seconds=config.network.probe_interval_seconds,
            timeout_seconds=config.network.probe_timeout_seconds,
        )
    reachability = ReachabilityMonitor(settings, probe=path_probe)

    fetcher = MkchFetcher(
        client=MkchClient.from_config(config.api, session=session),
        cache=cache,
        reachability=reachability,
        ttl=config.cache.ttl,
    )
    logger.debug("client context built cache_dir=%s", config.cache.directory)
    return ClientContext(
        config=config,
        settings=settings,
        cache=cache,
        reachability=reachability,
        sweeper=CacheSweeper(cache, interval_seconds=config.cache.sweep_interval_seconds),
        fetcher=fetcher,
    )
