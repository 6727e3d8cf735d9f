"""Tests for SignalingRelay routing and membership checks."""

import pytest

from app.domain.live.signaling.registry import SessionRegistry
from app.domain.live.signaling.relay import SignalingRelay
from app.domain.live.signaling.signaling_models import SignalingEvent
from app.utils.app_errors import AppError, AppErrorCode


@pytest.fixture
def relay(registry: SessionRegistry) -> SignalingRelay:
    registry.create_session("s1", "streamer", "k1")
    registry.add_viewer("s1", "viewer_1")
    registry.add_viewer("s1", "viewer_2")
    return SignalingRelay(registry)


class TestRoute:
    def test_offer_from_streamer_to_viewer(self, relay: SignalingRelay):
        offer = {"type": "offer", "sdp": "v=0..."}

        message = relay.route(SignalingEvent.WEBRTC_OFFER, "streamer", "s1", "viewer_1", offer)

        assert message.target == "viewer_1"
        assert message.event == SignalingEvent.WEBRTC_OFFER
        assert message.data == {"offer": offer, "fromId": "streamer", "streamId": "s1"}

    def test_answer_from_viewer_to_streamer(self, relay: SignalingRelay):
        message = relay.route(SignalingEvent.WEBRTC_ANSWER, "viewer_1", "s1", "streamer", {"sdp": "x"})

        assert message.target == "streamer"
        assert message.data["answer"] == {"sdp": "x"}
        assert message.data["fromId"] == "viewer_1"

    def test_candidate_payload_passed_through(self, relay: SignalingRelay):
        candidate = {"candidate": "candidate:1 1 udp 2122260223 10.0.0.1 54400 typ host", "sdpMid": "0"}

        message = relay.route(
            SignalingEvent.WEBRTC_ICE_CANDIDATE, "viewer_2", "s1", "streamer", candidate
        )

        assert message.data["candidate"] is candidate

    def test_unknown_session(self, relay: SignalingRelay):
        with pytest.raises(AppError) as exc_info:
            relay.route(SignalingEvent.WEBRTC_OFFER, "streamer", "missing", "viewer_1", {})

        assert exc_info.value.errcode == AppErrorCode.E_SESSION_NOT_FOUND.value

    def test_forged_target_rejected(self, relay: SignalingRelay):
        with pytest.raises(AppError) as exc_info:
            relay.route(SignalingEvent.WEBRTC_OFFER, "streamer", "s1", "stranger", {})

        assert exc_info.value.errcode == AppErrorCode.E_NOT_PARTICIPANT.value

    def test_non_member_sender_rejected(self, relay: SignalingRelay):
        with pytest.raises(AppError) as exc_info:
            relay.route(SignalingEvent.WEBRTC_ANSWER, "stranger", "s1", "streamer", {})

        assert exc_info.value.errcode == AppErrorCode.E_NOT_PARTICIPANT.value

    def test_viewer_to_viewer_rejected(self, relay: SignalingRelay):
        with pytest.raises(AppError) as exc_info:
            relay.route(SignalingEvent.WEBRTC_OFFER, "viewer_1", "s1", "viewer_2", {})

        assert exc_info.value.errcode == AppErrorCode.E_NOT_PARTICIPANT.value

    def test_self_target_rejected(self, relay: SignalingRelay):
        with pytest.raises(AppError) as exc_info:
            relay.route(SignalingEvent.WEBRTC_OFFER, "streamer", "s1", "streamer", {})

        assert exc_info.value.errcode == AppErrorCode.E_NOT_PARTICIPANT.value

    def test_non_relay_event_rejected(self, relay: SignalingRelay):
        with pytest.raises(AppError) as exc_info:
            relay.route(SignalingEvent.JOIN_SESSION, "streamer", "s1", "viewer_1", {})

        assert exc_info.value.errcode == AppErrorCode.E_INVALID_REQUEST.value


class TestDepartedTargets:
    def test_viewer_that_left_is_dropped(self, relay: SignalingRelay, registry: SessionRegistry):
        registry.remove_viewer("s1", "viewer_1")

        message = relay.route(SignalingEvent.WEBRTC_ICE_CANDIDATE, "streamer", "s1", "viewer_1", {})

        assert message is None

    def test_disconnected_member_is_dropped(self, registry: SessionRegistry):
        relay = SignalingRelay(registry, is_connected=lambda conn: conn != "viewer_1")
        registry.create_session("s1", "streamer", "k1")
        registry.add_viewer("s1", "viewer_1")

        message = relay.route(SignalingEvent.WEBRTC_OFFER, "streamer", "s1", "viewer_1", {})

        assert message is None

    def test_disconnected_stranger_is_dropped(self, registry: SessionRegistry):
        relay = SignalingRelay(registry, is_connected=lambda conn: conn != "gone")
        registry.create_session("s1", "streamer", "k1")

        assert relay.route(SignalingEvent.WEBRTC_OFFER, "streamer", "s1", "gone", {}) is None

    def test_connected_stranger_still_rejected(self, registry: SessionRegistry):
        relay = SignalingRelay(registry, is_connected=lambda conn: True)
        registry.create_session("s1", "streamer", "k1")

        with pytest.raises(AppError) as exc_info:
            relay.route(SignalingEvent.WEBRTC_OFFER, "streamer", "s1", "stranger", {})

        assert exc_info.value.errcode == AppErrorCode.E_NOT_PARTICIPANT.value

    def test_departed_sender_still_rejected(self, relay: SignalingRelay, registry: SessionRegistry):
        registry.remove_viewer("s1", "viewer_1")

        with pytest.raises(AppError) as exc_info:
            relay.route(SignalingEvent.WEBRTC_ANSWER, "viewer_1", "s1", "streamer", {})

        assert exc_info.value.errcode == AppErrorCode.E_NOT_PARTICIPANT.value
