"""Details stage: enrich pending rows with a place details lookup."""

import logging
import time
from typing import Callable

import requests

from golfscout.core.config import CollectionConfig
from golfscout.etl.transform import details_fields, merge_details
from golfscout.models import CollectionState, DetailsStatus
from golfscout.vendors.google_places import GooglePlacesError, PlacesPermissionError, PlacesRateLimitError

logger = logging.getLogger(__name__)


def _aborts_batch(exc: GooglePlacesError) -> bool:
    """Client errors other than NOT_FOUND point at the key or the request, not the row."""
    if isinstance(exc, (PlacesPermissionError, PlacesRateLimitError)):
        return True
    status = exc.status_code
    return status is not None and 400 <= status < 500 and status != 404


def run_details_batch(
    state: CollectionState,
    quota: int,
    *,
    config: CollectionConfig,
    client,
    store,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Enrich up to ``quota`` pending rows; True once no pending rows remain.

    Progress lives in the rows' ``details_status`` markers, so ``state`` is
    left untouched. A missing place (404), a server error or a network error
    marks only that row as ``error``; any other 4xx aborts the batch.
    """
    rows = store.pending_details(quota)
    if not rows:
        logger.info("Details stage: no pending rows")
        return True

    logger.info("Details batch: enriching %d row(s)", len(rows))
    for index, (row_id, record) in enumerate(rows):
        if index:
            sleep(config.details_delay_seconds)
        try:
            place = client.place_details(record.id, language_code=config.language_code)
        except GooglePlacesError as exc:
            if _aborts_batch(exc):
                raise
            logger.warning("Details lookup failed for %s: %s", record.id, exc)
            store.mark_details(row_id, DetailsStatus.ERROR, str(exc)[:500])
            continue
        except requests.RequestException as exc:
            logger.warning("Details lookup failed for %s: %s", record.id, exc)
            store.mark_details(row_id, DetailsStatus.ERROR, str(exc)[:500])
            continue

        changes = merge_details(record, details_fields(place, config.outdoor_tags, config.indoor_tags))
        changes["details_status"] = DetailsStatus.DONE.value
        changes["details_error"] = ""
        store.update_row(row_id, changes)
        logger.debug("Enriched %s (%d field(s) changed)", record.id, len(changes) - 2)

    remaining = store.count_pending()
    logger.info("Details batch done; %d row(s) still pending", remaining)
    return remaining == 0
