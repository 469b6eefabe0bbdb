"""Main application entry point: a terminal view of the tracked instruments."""

import sys
import time

from src.services.market_data_store import LoadState
from src.services.tracker_session import ListView, TrackerSession
from src.utils.config import config
from src.utils.logger import StructuredLogger

logger = StructuredLogger("main")


def render_list(view: ListView) -> str:
    """Render the instrument list as a fixed-width table."""
    if view.loading:
        return "LOADING MARKET DATA..."

    lines = []
    if view.error:
        lines.append(f"! {view.error}")
    if view.show_empty_state:
        lines.append("NO ASSETS FOUND - check your search term")
        return "\n".join(lines)

    lines.append(f"{'#':<4}{'ASSET':<10}{'PRICE':>16}{'24H':>10}{'MARKET CAP':>14}{'VOLUME':>12}")
    for row in view.rows:
        lines.append(
            f"{row.rank:<4}{row.symbol:<10}{row.price:>16}{row.change_24h:>10}"
            f"{row.market_cap:>14}{row.volume:>12}"
        )
    lines.append(f"{view.total} assets")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    try:
        config.validate()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    session = TrackerSession()
    if argv:
        session.set_search(argv[0])

    last_state = None

    def on_change(current: TrackerSession) -> None:
        nonlocal last_state
        state = current.market_store.state
        if state != last_state and state in (LoadState.READY, LoadState.FAILED):
            print(render_list(current.list_view()), flush=True)
        last_state = state

    session.subscribe(on_change)
    logger.info(
        "Starting crypto tracker",
        context={"refresh_interval_seconds": config.refresh.interval_seconds, "search": session.search_term},
    )

    with session:
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Shutting down crypto tracker")
    return 0


if __name__ == "__main__":
    sys.exit(main())
