import pytest

from baboo_api.services.state_machine import (
    InquiryStatus,
    InvalidTransitionError,
    can_set_manually,
    can_transition,
    is_accepted,
    sources_for,
)


class TestCanTransition:
    def test_new_to_assigned(self):
        assert can_transition(InquiryStatus.NEW, InquiryStatus.ASSIGNED) is True

    def test_assigned_to_in_progress(self):
        assert can_transition(InquiryStatus.ASSIGNED, InquiryStatus.IN_PROGRESS) is True

    def test_in_progress_to_resolved(self):
        assert can_transition(InquiryStatus.IN_PROGRESS, InquiryStatus.RESOLVED) is True

    def test_never_backwards(self):
        assert can_transition(InquiryStatus.IN_PROGRESS, InquiryStatus.ASSIGNED) is False
        assert can_transition(InquiryStatus.ASSIGNED, InquiryStatus.NEW) is False

    def test_resolved_is_terminal(self):
        for target in InquiryStatus:
            assert can_transition(InquiryStatus.RESOLVED, target) is False


class TestCanSetManually:
    def test_only_new_to_assigned(self):
        assert can_set_manually(InquiryStatus.NEW, InquiryStatus.ASSIGNED) is True

    @pytest.mark.parametrize(
        "from_state,to_state",
        [
            (InquiryStatus.NEW, InquiryStatus.IN_PROGRESS),
            (InquiryStatus.ASSIGNED, InquiryStatus.IN_PROGRESS),
            (InquiryStatus.NEW, InquiryStatus.RESOLVED),
            (InquiryStatus.ASSIGNED, InquiryStatus.RESOLVED),
            (InquiryStatus.IN_PROGRESS, InquiryStatus.RESOLVED),
        ],
    )
    def test_acceptance_and_resolution_excluded(self, from_state, to_state):
        assert can_transition(from_state, to_state) is True
        assert can_set_manually(from_state, to_state) is False


class TestInvalidTransitionError:
    def test_message_names_both_states(self):
        error = InvalidTransitionError(InquiryStatus.RESOLVED, InquiryStatus.IN_PROGRESS)

        assert "resolved -> in_progress" in str(error)


class TestSourcesFor:
    def test_in_progress_sources(self):
        assert set(sources_for(InquiryStatus.IN_PROGRESS)) == {InquiryStatus.NEW, InquiryStatus.ASSIGNED}

    def test_resolved_sources(self):
        assert set(sources_for(InquiryStatus.RESOLVED)) == {
            InquiryStatus.NEW,
            InquiryStatus.ASSIGNED,
            InquiryStatus.IN_PROGRESS,
        }

    def test_new_has_no_sources(self):
        assert sources_for(InquiryStatus.NEW) == []


class TestIsAccepted:
    @pytest.mark.parametrize(
        "status,expected",
        [
            ("new", False),
            ("assigned", False),
            ("in_progress", True),
            ("resolved", True),
            (None, False),
            ("garbage", False),
        ],
    )
    def test_derived_from_status(self, status, expected):
        assert is_accepted(status) is expected
