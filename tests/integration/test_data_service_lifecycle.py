# =============================================================================
# tests/integration/test_data_service_lifecycle.py
# Integration Tests: Sessions, Loading, Offline Queue and Sync
# =============================================================================

from unittest.mock import MagicMock

import pytest

from rental_core.errors import AuthError
from rental_core.models import Comment, Property
from rental_core.offline.local_store import namespaced_key
from rental_core.offline.unified_data_service import RentalDataService
from rental_core.state import (
    get_session_data_service,
    restore_session,
    sign_in_user,
    sign_out_and_reset,
    sign_up_user,
)
from rental_core.state.session import DATA_SERVICE_KEY

from tests.conftest import USER_EMAIL, USER_ID


@pytest.fixture
def signed_out_service(settings, local_store, fake_supabase):
    """Supabase configured, nobody signed in yet"""
    service = RentalDataService(settings, client=fake_supabase, store=local_store)
    service.start()
    yield service
    service.teardown()


class TestLocalOnly:
    """Without Supabase the app runs entirely on local snapshots"""

    def test_starts_ready_and_empty(self, local_service):
        assert local_service.is_ready
        assert not local_service.is_signed_in

        status = local_service.get_status()
        assert status["mode"] == "local"
        assert status["remote_configured"] is True
        assert all(c == {"status": "ready", "count": 0} for c in status["collections"].values())

    def test_restart_reloads_local_snapshot(self, settings, local_store, local_service, sample_property):
        local_service.properties.add(sample_property)

        restarted = RentalDataService(settings, client=None, store=local_store)
        restarted.start()

        assert [p.name for p in restarted.properties.all()] == ["Sunset Flat"]

    def test_sign_in_not_configured(self, local_service):
        with pytest.raises(AuthError):
            local_service.sign_in(USER_EMAIL, "secret-pass")


class TestSessionLifecycle:
    """Sign-in loads the owner's remote data; sign-out clears memory"""

    def test_sign_in_loads_remote_and_mirrors(self, signed_out_service, fake_supabase, local_store):
        fake_supabase.rows["properties_rm2024"] = [
            {"id": "p1", "user_id": USER_ID, "name": "Loft", "currency": "EUR"},
        ]
        fake_supabase.rows["comments_rm2024"] = [
            {"id": "c1", "user_id": USER_ID, "text": "Hello"},
            {"id": "c2", "user_id": "someone-else", "text": "Not mine"},
        ]

        signed_out_service.sign_in(USER_EMAIL, "secret-pass")

        assert signed_out_service.is_signed_in
        assert [p.id for p in signed_out_service.properties.all()] == ["p1"]
        assert [c.id for c in signed_out_service.comments.all()] == ["c1"]
        mirrored = local_store.read_snapshot(namespaced_key("rental-properties", USER_ID))
        assert [r["id"] for r in mirrored] == ["p1"]

    def test_sign_in_loads_once(self, signed_out_service, fake_supabase):
        signed_out_service.sign_in(USER_EMAIL, "secret-pass")

        selects = [r for r in fake_supabase.requests if r == ("select", "properties_rm2024")]
        assert len(selects) == 1

    def test_sign_out_clears_collections(self, remote_service, sample_property):
        remote_service.properties.add(sample_property)

        remote_service.sign_out()

        assert not remote_service.is_signed_in
        assert len(remote_service.properties) == 0
        assert remote_service.get_status()["mode"] == "local"

    def test_sign_out_restores_device_data(self, signed_out_service, local_store):
        """Records added while signed out survive a sign-in/sign-out cycle"""
        signed_out_service.properties.add(Property(name="Anon A"))

        signed_out_service.sign_in(USER_EMAIL, "secret-pass")
        assert len(signed_out_service.properties) == 0
        signed_out_service.sign_out()

        assert signed_out_service.properties.is_ready
        assert [p.name for p in signed_out_service.properties.all()] == ["Anon A"]

        signed_out_service.properties.add(Property(name="Anon B"))

        stored = local_store.read_snapshot("rental-properties")
        assert sorted(r["name"] for r in stored) == ["Anon A", "Anon B"]

    def test_sign_out_can_forget_device_data(self, remote_service, local_store, sample_property):
        remote_service.properties.add(sample_property)
        key = namespaced_key("rental-properties", USER_ID)
        assert local_store.read_snapshot(key)

        remote_service.sign_out(forget_device_data=True)

        assert local_store.read_snapshot(key) is None

    def test_signed_out_data_is_not_shown_to_user(self, settings, local_store, fake_supabase):
        """Anonymous local data and the owner's data live under different keys"""
        local_store.write_snapshot("rental-properties", [{"id": "anon", "name": "Shed"}])
        fake_supabase.fail = True
        fake_supabase.auth.start_session(USER_EMAIL)

        service = RentalDataService(settings, client=fake_supabase, store=local_store)
        service.start()

        assert len(service.properties) == 0
        service.teardown()


class TestOfflineQueue:
    """Writes that fall back while signed in are replayed later"""

    def test_failed_writes_are_queued_then_synced(self, remote_service, signed_in_supabase, sample_property):
        signed_in_supabase.fail = True
        prop = remote_service.properties.add(sample_property)
        remote_service.properties.update(prop.id, {"rent": 1500})

        assert remote_service.get_status()["pending_sync"] == 2
        assert signed_in_supabase.rows["properties_rm2024"] == []

        signed_in_supabase.fail = False
        assert remote_service.sync_now() is True

        rows = signed_in_supabase.rows["properties_rm2024"]
        assert len(rows) == 1
        assert rows[0]["id"] == prop.id
        assert rows[0]["rent"] == 1500
        assert remote_service.pending_sync_count == 0

    def test_reload_pushes_queue_first(self, remote_service, signed_in_supabase):
        signed_in_supabase.fail = True
        comment = remote_service.comments.add(Comment(text="Boiler checked"))

        signed_in_supabase.fail = False
        remote_service.load()

        assert [c.id for c in remote_service.comments.all()] == [comment.id]
        assert remote_service.pending_sync_count == 0

    def test_local_only_writes_are_not_queued(self, local_service, sample_property):
        local_service.properties.add(sample_property)

        assert local_service.pending_sync_count == 0


class TestObservers:
    """Test service-wide subscriptions"""

    def test_subscribe_and_unsubscribe(self, local_service, sample_property):
        observer = MagicMock()
        unsubscribe = local_service.subscribe(observer)

        local_service.properties.add(sample_property)
        assert observer.call_args[0][0] == "properties"

        unsubscribe()
        local_service.properties.add(Property(name="Annex"))
        assert observer.call_count == 1


class TestStreamlitSession:
    """Test the st.session_state binding"""

    def test_service_reused_within_session(self, mock_streamlit, local_service):
        mock_streamlit.session_state[DATA_SERVICE_KEY] = local_service

        assert get_session_data_service() is local_service
        assert restore_session() is None

    def test_new_session_builds_service(self, mock_streamlit, settings):
        local_settings = type(settings)(local_db_path=settings.local_db_path)

        service = get_session_data_service(lambda: local_settings)

        assert mock_streamlit.session_state[DATA_SERVICE_KEY] is service
        assert service.client is None
        assert service.is_ready
        service.teardown()

    def test_sign_in_user_shows_auth_error(self, mock_streamlit, signed_out_service):
        mock_streamlit.session_state[DATA_SERVICE_KEY] = signed_out_service

        assert sign_in_user(USER_EMAIL, "wrong") is False
        mock_streamlit.error.assert_called_once_with("Invalid login credentials")
        assert mock_streamlit.session_state["user_email"] is None

        assert sign_in_user(f"  {USER_EMAIL} ", "secret-pass") is True
        assert mock_streamlit.session_state["user_email"] == USER_EMAIL
        assert signed_out_service.is_signed_in

    def test_sign_up_user_awaiting_confirmation(self, mock_streamlit, signed_out_service, fake_supabase):
        fake_supabase.auth.confirm_email = True
        mock_streamlit.session_state[DATA_SERVICE_KEY] = signed_out_service

        assert sign_up_user("new.com", "long-enough") is True

        mock_streamlit.info.assert_called_once()
        assert not signed_out_service.is_signed_in

    def test_sign_up_user_duplicate_account(self, mock_streamlit, signed_out_service):
        mock_streamlit.session_state[DATA_SERVICE_KEY] = signed_out_service

        assert sign_up_user(USER_EMAIL, "long-enough") is False
        mock_streamlit.error.assert_called_once_with("User already registered")

    def test_sign_out_and_reset(self, mock_streamlit, local_service):
        mock_streamlit.session_state[DATA_SERVICE_KEY] = local_service
        mock_streamlit.session_state["selected_currency"] = "EUR"

        sign_out_and_reset()

        assert mock_streamlit.session_state[DATA_SERVICE_KEY] is None
        assert mock_streamlit.session_state["selected_currency"] == "USD"
