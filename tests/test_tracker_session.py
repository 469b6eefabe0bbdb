"""Tests for the tracker session and its view models."""

from dataclasses import replace
from unittest.mock import Mock

import pytest

from src.services.chart_data_store import ChartState
from src.services.tracker_session import TrackerSession
from src.utils.errors import BadResponse, NetworkFailure


def _run_inline(fn, *args):
    return fn(*args)


@pytest.fixture
def session(mock_client):
    """Session with chart loads run inline and the list already loaded."""
    tracker = TrackerSession(client=mock_client, dispatch=_run_inline, default_period=7)
    tracker.market_store.refresh()
    return tracker


class TestListView:
    """Tests for the instrument list view."""

    def test_loading_before_first_fetch(self, mock_client):
        view = TrackerSession(client=mock_client, dispatch=_run_inline).list_view()
        assert view.loading is True
        assert view.rows == ()
        assert view.show_empty_state is False

    def test_rows_are_formatted(self, session):
        view = session.list_view()

        assert view.total == 3
        assert view.loading is False
        assert view.error is None
        bitcoin, ethereum, dogecoin = view.rows
        assert (bitcoin.rank, bitcoin.symbol, bitcoin.name) == ("01", "BTC", "Bitcoin")
        assert bitcoin.price == "$64,123.45"
        assert bitcoin.change_24h == "+2.50%"
        assert bitcoin.change_direction == "positive"
        assert bitcoin.market_cap == "$1.26T"
        assert bitcoin.volume == "$32.00B"
        assert ethereum.change_24h == "-1.25%"
        assert ethereum.change_direction == "negative"
        assert ethereum.market_cap == "$380.00B"
        assert dogecoin.rank == "08"
        assert dogecoin.price == "$0.1234"
        assert dogecoin.change_24h == "—"
        assert dogecoin.volume == "$950.00M"

    def test_search_filters_rows(self, session):
        session.set_search("bit")
        view = session.list_view()
        assert view.total == 1
        assert view.rows[0].id == "bitcoin"

    def test_search_without_match_shows_empty_state(self, session):
        session.set_search("zzz")
        view = session.list_view()
        assert view.total == 0
        assert view.show_empty_state is True

    def test_failed_refresh_keeps_rows_with_error(self, session, mock_client):
        mock_client.fetch_markets.side_effect = BadResponse("HTTP 429", status_code=429)
        session.market_store.refresh()
        view = session.list_view()

        assert view.total == 3
        assert view.error == "Failed to load data. Please try again."

    def test_retry_clears_error(self, session, mock_client):
        mock_client.fetch_markets.side_effect = NetworkFailure("offline")
        session.market_store.refresh()
        mock_client.fetch_markets.side_effect = None

        assert session.retry() is True
        assert session.list_view().error is None


class TestChartView:
    """Tests for selection, period switching and hover."""

    def test_nothing_selected(self, session):
        assert session.chart_view() is None

    def test_select_loads_default_period(self, session, mock_client):
        session.select("bitcoin")
        view = session.chart_view()

        mock_client.fetch_market_chart.assert_called_once_with("bitcoin", 7)
        assert view.symbol == "BTC"
        assert view.name == "Bitcoin"
        assert view.price == "$64,123.45"
        assert view.period_days == 7
        assert view.periods == (7, 30, 90)
        assert view.loading is False
        assert view.error is None
        assert view.frame is not None
        assert view.frame.sample_count == 4
        assert view.period_change == "▲ 10.00% (7d)"
        assert view.period_direction == "up"

    def test_footer_stats(self, session):
        session.select("bitcoin")
        footer = {stat.label: stat for stat in session.chart_view().footer}

        assert footer["RANK"].value == "#1"
        assert footer["24H CHANGE"].value == "2.50%"
        assert footer["24H CHANGE"].direction == "up"
        assert footer["24H HIGH"].value == "$65,000.00"
        assert footer["24H LOW"].value == "$63,000.00"

    def test_select_unknown_instrument(self, session):
        with pytest.raises(KeyError):
            session.select("solana")

    def test_set_period_refetches(self, session, mock_client):
        session.select("ethereum")
        session.set_period(30)

        assert mock_client.fetch_market_chart.call_args[0] == ("ethereum", 30)
        view = session.chart_view()
        assert view.period_days == 30
        assert view.period_change == "▲ 10.00% (30d)"

    def test_same_period_does_not_refetch(self, session, mock_client):
        session.select("ethereum")
        session.set_period(7)
        assert mock_client.fetch_market_chart.call_count == 1

    def test_invalid_period(self, session):
        session.select("bitcoin")
        with pytest.raises(ValueError):
            session.set_period(14)

    def test_reselect_resets_period(self, session):
        session.select("bitcoin")
        session.set_period(90)
        session.select("ethereum")
        assert session.chart_view().period_days == 7

    def test_deselect(self, session):
        session.select("bitcoin")
        session.deselect()
        assert session.chart_view() is None
        assert session.chart_store.state is ChartState.IDLE

    def test_hover_and_tooltip(self, session):
        session.select("bitcoin")
        frame = session.chart_view().frame
        x, y = frame.points[3]

        hover = session.pointer_move(x, y)
        view = session.chart_view()

        assert hover.sample_index == 3
        assert view.hover == hover
        assert view.tooltip.price_label == "$110.00"
        assert view.tooltip.date_label == "Oct 04, 2026"

    def test_pointer_leave_clears_hover(self, session):
        session.select("bitcoin")
        session.pointer_move(*session.chart_view().frame.points[0])
        session.pointer_leave()
        assert session.chart_view().hover is None

    def test_period_switch_resets_hover(self, session):
        session.select("bitcoin")
        session.pointer_move(*session.chart_view().frame.points[1])
        session.set_period(90)

        view = session.chart_view()
        assert view.hover is None
        assert view.tooltip is None

    def test_chart_failure_is_scoped_to_chart(self, session, mock_client):
        mock_client.fetch_market_chart.side_effect = NetworkFailure("offline")
        session.select("bitcoin")

        chart = session.chart_view()
        assert chart.error == "Failed to load chart. Please try again."
        assert chart.frame is None
        assert chart.period_change is None
        assert session.list_view().error is None
        assert session.list_view().total == 3

    def test_retry_chart(self, session, mock_client):
        chart_loader = mock_client.fetch_market_chart.side_effect
        mock_client.fetch_market_chart.side_effect = NetworkFailure("offline")
        session.select("bitcoin")

        mock_client.fetch_market_chart.side_effect = chart_loader
        session.retry_chart()
        assert session.chart_view().frame is not None

    def test_details_follow_latest_snapshot(self, session, mock_client, instruments):
        session.select("bitcoin")

        repriced = replace(instruments[0], current_price=70000.0, high_24h=71000.0)
        mock_client.fetch_markets.return_value = (repriced,) + instruments[1:]
        session.market_store.refresh()

        view = session.chart_view()
        assert view.price == "$70,000.00"
        footer = {stat.label: stat.value for stat in view.footer}
        assert footer["24H HIGH"] == "$71,000.00"

    def test_details_kept_when_instrument_drops_out(self, session, mock_client, instruments):
        session.select("bitcoin")
        mock_client.fetch_markets.return_value = instruments[1:]
        session.market_store.refresh()

        assert session.chart_view().price == "$64,123.45"


class TestSessionLifecycle:
    """Tests for session start/stop and dispatch."""

    def test_default_dispatch_uses_scheduler(self, mock_client):
        scheduler = Mock()
        scheduler.running = False
        session = TrackerSession(client=mock_client, scheduler=scheduler)
        session.market_store.refresh()
        session.select("bitcoin")

        scheduler.add_job.assert_called_once()
        args, kwargs = scheduler.add_job.call_args
        assert args[0] == session.chart_store.load
        assert kwargs["args"][0].key == ("bitcoin", 7)
        assert kwargs["name"] == "Chart Data Load"
        assert session.chart_view().loading is True

    def test_start_and_stop(self, mock_client):
        session = TrackerSession(client=mock_client, dispatch=_run_inline)
        session.start()
        try:
            assert session.scheduler.running is True
            assert session.market_store.is_running is True
            assert session.list_view().total == 3
        finally:
            session.stop()

        assert session.scheduler.running is False
        assert session.market_store.is_running is False

    def test_listeners_are_notified(self, session):
        listener = Mock()
        session.subscribe(listener)
        session.set_search("eth")
        listener.assert_called_with(session)

    def test_invalid_default_period(self, mock_client):
        with pytest.raises(ValueError):
            TrackerSession(client=mock_client, default_period=14)
