"""Search stage: walk centers x keywords, paginate, dedupe and append.

Traversal is row-major (centers outer, keywords inner) and is part of the
resume contract: ``center_index``/``keyword_index``/``continuation_cursor``
on the state always point at the next page to fetch.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from golfscout.core.config import CollectionConfig
from golfscout.etl.transform import region_allowed, to_record
from golfscout.models import Center, CollectionState

logger = logging.getLogger(__name__)

VARIANT_TYPED = 0
VARIANT_UNTYPED = 1
VARIANT_RELAXED = 2


def _search(client, config: CollectionConfig, center: Center, keyword: str, variant: int, cursor: Optional[str]) -> Dict[str, Any]:
    relaxed = variant == VARIANT_RELAXED
    return client.search_text(
        keyword,
        latitude=center.latitude,
        longitude=center.longitude,
        radius=config.relaxed_radius_meters if relaxed else config.search_radius_meters,
        included_type=config.included_type if variant == VARIANT_TYPED else None,
        page_size=config.relaxed_page_size if relaxed else config.page_size,
        page_token=cursor,
        language_code=config.language_code,
        region_code=config.region_code,
    )


def _fetch_page(client, config: CollectionConfig, state: CollectionState, center: Center, keyword: str) -> Tuple[List[Dict[str, Any]], Optional[str]]:
    """Fetch the page the state points at, falling back on an empty first page."""
    if state.continuation_cursor:
        payload = _search(client, config, center, keyword, state.search_variant, state.continuation_cursor)
        return payload.get("places") or [], payload.get("nextPageToken") or None

    variant = state.search_variant
    if variant == VARIANT_TYPED and not config.included_type:
        variant = VARIANT_UNTYPED
    while True:
        payload = _search(client, config, center, keyword, variant, None)
        places = payload.get("places") or []
        if places or variant >= VARIANT_RELAXED:
            break
        variant += 1
        logger.info("No results for %s @ %s; retrying with fallback variant %s", keyword, center.name, variant)
    state.search_variant = variant
    return places, payload.get("nextPageToken") or None


def _advance_page(state: CollectionState, next_token: Optional[str]) -> None:
    if next_token:
        state.continuation_cursor = next_token
    else:
        state.reset_search_cursor()
        state.keyword_index += 1


def run_search_batch(
    state: CollectionState,
    quota: int,
    *,
    config: CollectionConfig,
    client,
    store,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Append up to ``quota`` new records, mutating ``state`` to the resume point.

    Returns True once every (center, keyword) pair has been exhausted.
    Provider errors propagate to the caller.
    """
    seen = set(store.existing_ids())
    appended = 0
    centers = config.centers
    keywords = config.keywords
    logger.info(
        "Search batch starting at center=%s/%s keyword=%s/%s quota=%s (%d known ids)",
        state.center_index,
        len(centers),
        state.keyword_index,
        len(keywords),
        quota,
        len(seen),
    )

    while state.center_index < len(centers):
        center = centers[state.center_index]
        while state.keyword_index < len(keywords):
            keyword = keywords[state.keyword_index]
            places, next_token = _fetch_page(client, config, state, center, keyword)
            logger.info("Fetched %d places for %s @ %s", len(places), keyword, center.name)

            for position, place in enumerate(places, start=1):
                record = to_record(
                    place,
                    center=center,
                    keyword=keyword,
                    outdoor_tags=config.outdoor_tags,
                    indoor_tags=config.indoor_tags,
                )
                if record is None or record.id in seen:
                    continue
                if not region_allowed(record, config.region_allowlist):
                    logger.info("Skipping %s: region %s outside allow-list", record.id, record.source_region)
                    continue

                store.append(record)
                seen.add(record.id)
                appended += 1
                state.batch_processed_count += 1

                if appended >= quota:
                    if position == len(places):
                        _advance_page(state, next_token)
                    logger.info(
                        "Search quota reached (%d); pausing at center=%s keyword=%s",
                        appended,
                        state.center_index,
                        state.keyword_index,
                    )
                    return False

            _advance_page(state, next_token)
            if next_token:
                sleep(config.page_delay_seconds)

        state.center_index += 1
        state.keyword_index = 0
        state.reset_search_cursor()

    logger.info("Search stage finished; appended %d in this batch", appended)
    return True
