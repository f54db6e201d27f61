# karauli/fetch.py

import logging
import concurrent.futures
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from karauli.selection import RegionIdentity, SelectionController

logger = logging.getLogger(__name__)

REGIONAL = "regional"
PRECIPITATION = "precipitation"
OVERLAY = "overlay"

OVERLAY_POLL_SECONDS = 0.25


@dataclass(frozen=True)
class FetchError:
    request: str
    message: str


@dataclass(frozen=True)
class FetchBundle:
    """
    Settled outcome of one selection's fetch.
    A series is None when its request failed; the reason is in `errors`.
    """
    identity: RegionIdentity
    token: int
    regional_series: Optional[Dict[str, Dict[str, float]]] = None
    precipitation_series: Optional[list] = None
    errors: Dict[str, FetchError] = field(default_factory=dict)
    overlay: Optional[concurrent.futures.Future] = field(default=None, compare=False, repr=False)


class DataFetchCoordinator:
    """
    Issues the per-village requests in parallel and tags their outcome with
    the selection token. Nothing in flight is cancelled; results for a
    superseded selection are dropped when they settle.
    """

    def __init__(self, client, controller: SelectionController,
                 executor: Optional[concurrent.futures.Executor] = None, max_workers: int = 6):
        self.client = client
        self.controller = controller
        self.executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="karauli-fetch"
        )

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False)

    def fetch(self, identity: RegionIdentity, token: int) -> Optional[FetchBundle]:
        """
        Blocks until both the area and rainfall requests have settled.
        Returns None when the selection moved on in the meantime.
        """
        future_to_request = {
            self.executor.submit(self.client.area_change, identity.name): REGIONAL,
            self.executor.submit(self.client.rainfall_data, identity.name): PRECIPITATION,
        }
        # Overlay is best-effort and never waited on here
        overlay = self.executor.submit(self.client.raster_tiles_url)

        results: Dict[str, Any] = {}
        errors: Dict[str, FetchError] = {}
        for future in concurrent.futures.as_completed(future_to_request):
            request = future_to_request[future]
            try:
                results[request] = future.result()
            except Exception as e:
                logger.warning("Fetching %s data for %s failed: %s", request, identity.name, e)
                errors[request] = FetchError(request, str(e))

        if not self.controller.is_current(token):
            logger.debug("Discarding stale fetch for %s (token %d, current %d)",
                         identity.name, token, self.controller.current_token())
            return None

        return FetchBundle(
            identity=identity,
            token=token,
            regional_series=results.get(REGIONAL),
            precipitation_series=results.get(PRECIPITATION),
            errors=errors,
            overlay=overlay,
        )

    def resolve_overlay(self, bundle: FetchBundle, timeout: Optional[float] = None,
                        poll_interval: float = OVERLAY_POLL_SECONDS) -> Optional[str]:
        """
        Overlay tile URL for the bundle, or None if it failed, timed out or went stale.
        Waits in slices of `poll_interval` so a superseded selection stops waiting early.
        """
        if bundle.overlay is None:
            return None
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if not self.controller.is_current(bundle.token):
                logger.debug("Discarding stale overlay for %s", bundle.identity.name)
                return None
            step = poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.warning("Overlay request for %s still pending after %ss", bundle.identity.name, timeout)
                    return None
                step = min(step, remaining)
            try:
                url = bundle.overlay.result(timeout=step)
                break
            except concurrent.futures.TimeoutError:
                if not bundle.overlay.done():
                    continue
                logger.warning("Fetching overlay raster failed: timed out")
                return None
            except Exception as e:
                logger.warning("Fetching overlay raster failed: %s", e)
                return None

        if not self.controller.is_current(bundle.token):
            logger.debug("Discarding stale overlay for %s", bundle.identity.name)
            return None
        return url
