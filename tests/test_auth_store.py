"""
Testes do provedor de identidade e do AuthStore por requisição.
"""

import pytest

from service_os.auth_store import AuthStore
from service_os.exceptions import AuthError, IdentityResolutionError, StorageError
from service_os.identity import SESSION_KEY, IdentityProvider, SessionEvent
from service_os.models.role import Role
from service_os.services.user_directory import UserDirectory

from conftest import PASSWORD


@pytest.fixture
def cookie():
    """Faz o papel do request.session."""
    return {}


@pytest.fixture
def identity(db, cookie):
    return IdentityProvider(db, cookie)


@pytest.fixture
def store(db, identity):
    store = AuthStore(identity, UserDirectory(db))
    store.start()
    yield store
    store.close()


class FailingDirectory:
    def resolve_user(self, auth_id, email):
        raise StorageError()


class TestIdentityProvider:
    def test_login_stores_session(self, identity, cookie, city_hall):
        session = identity.login(city_hall.email, PASSWORD)
        assert cookie[SESSION_KEY]["user_id"] == session.user_id
        assert identity.get_session() == session

    def test_wrong_password(self, identity, city_hall):
        with pytest.raises(AuthError):
            identity.login(city_hall.email, "errada")

    def test_unknown_email(self, identity, db):
        with pytest.raises(AuthError):
            identity.login("ninguem@example.com", PASSWORD)

    def test_listeners_receive_events_in_order(self, identity, city_hall):
        events = []
        unsubscribe = identity.on_session_change(lambda event, session: events.append(event))
        identity.login(city_hall.email, PASSWORD)
        identity.logout()
        unsubscribe()
        identity.login(city_hall.email, PASSWORD)
        assert events == [SessionEvent.SIGNED_IN, SessionEvent.SIGNED_OUT]

    def test_session_of_deleted_account_is_dropped(self, db, identity, cookie, admin, workshop):
        identity.login(workshop.email, PASSWORD)
        UserDirectory(db).delete_user(admin, workshop.id)
        assert identity.get_session() is None
        assert SESSION_KEY not in cookie


class TestAuthStore:
    def test_starts_signed_out(self, store):
        assert store.current_user() is None
        assert store.session is None
        assert store.error is None

    def test_login_resolves_profile(self, store, city_hall):
        user = store.login(city_hall.email, PASSWORD)
        assert user.id == city_hall.id
        assert user.role == Role.CITY_HALL
        assert user.city_hall.parts_discount_percentage == 10
        assert store.current_user() == user

    def test_restores_session_from_cookie(self, db, identity, cookie, workshop):
        identity.login(workshop.email, PASSWORD)
        fresh = AuthStore(IdentityProvider(db, cookie), UserDirectory(db))
        fresh.start()
        assert fresh.current_user().id == workshop.id

    def test_first_login_provisions_default_profile(self, db, identity, store):
        identity.create_account("novo.usuario@example.com", PASSWORD)
        db.commit()

        user = store.login("novo.usuario@example.com", PASSWORD)

        assert user.role == Role.QUERY_ADMIN
        assert user.login == "novo.usuario"
        assert user.email == "novo.usuario@example.com"
        # Segundo login reaproveita o perfil criado
        store.logout()
        assert store.login("novo.usuario@example.com", PASSWORD).id == user.id

    def test_subscribers_are_notified(self, store, city_hall):
        seen = []
        unsubscribe = store.subscribe(seen.append)
        store.login(city_hall.email, PASSWORD)
        store.logout()
        unsubscribe()
        store.login(city_hall.email, PASSWORD)
        assert [user.id if user else None for user in seen] == [city_hall.id, None]

    def test_sign_out_during_resolution_wins(self, db, identity, city_hall):
        directory = UserDirectory(db)

        class SlowDirectory:
            def resolve_user(self, auth_id, email):
                # O logout chega enquanto o perfil ainda está sendo carregado
                identity.logout()
                return directory.resolve_user(auth_id, email)

        store = AuthStore(identity, SlowDirectory())
        store.start()
        store.login(city_hall.email, PASSWORD)

        assert store.current_user() is None
        assert store.session is None

    def test_profile_failure_fails_closed(self, identity, city_hall):
        store = AuthStore(identity, FailingDirectory())
        store.start()

        with pytest.raises(IdentityResolutionError):
            store.login(city_hall.email, PASSWORD)
        assert store.current_user() is None
        assert store.session is None
        assert isinstance(store.error, IdentityResolutionError)

    def test_close_unsubscribes(self, identity, store, city_hall):
        store.close()
        identity.login(city_hall.email, PASSWORD)
        assert store.current_user() is None
