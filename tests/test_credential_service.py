"""Unit tests for app.services.auth: provisioning, duplicate detection and authentication."""

import asyncio
import unittest
from dataclasses import fields
from unittest.mock import patch

from app.core.security import PasswordHashingError
from app.services import auth as auth_service
from app.services.auth import (
    AuthenticatedUser,
    CredentialService,
    DuplicateAccount,
    HashingFailure,
    InvalidCredentials,
    LookupFailure,
    Ok,
    ProvisioningFailure,
    normalize_email,
)
from tests.fakes import InMemoryUserStore, LoopRecordingStore


def _service(store: InMemoryUserStore | None = None) -> CredentialService:
    return CredentialService(store or InMemoryUserStore(), bcrypt_rounds=4)


def _create(service: CredentialService, **kwargs: object):
    params = {"name": "John Doe", "email": "john@example.com", "password": "securePass123"}
    params.update(kwargs)
    return asyncio.run(service.create_user(**params))


class TestNormalizeEmail(unittest.TestCase):
    """normalize_email trims and lowercases, and is idempotent."""

    def test_trims_and_lowercases(self) -> None:
        self.assertEqual(normalize_email("  Foo@Bar.COM "), "foo@bar.com")

    def test_idempotent(self) -> None:
        once = normalize_email(" Foo@Bar.com ")
        self.assertEqual(normalize_email(once), once)


class TestCreateUser(unittest.TestCase):
    """create_user inserts once, strips the hash and rejects duplicates before hashing."""

    def test_creates_user_without_password(self) -> None:
        store = InMemoryUserStore()
        result = _create(_service(store))
        self.assertIsInstance(result, Ok)
        user = result.user
        self.assertIsInstance(user, AuthenticatedUser)
        self.assertEqual(user.id, 1)
        self.assertEqual(user.name, "John Doe")
        self.assertEqual(user.email, "john@example.com")
        self.assertEqual(user.role, "user")
        self.assertIsNotNone(user.created_at)
        self.assertNotIn("password", {f.name for f in fields(user)})
        self.assertEqual(store.insert_calls, 1)

    def test_stores_hash_not_plaintext(self) -> None:
        store = InMemoryUserStore()
        _create(_service(store))
        stored = store.users["john@example.com"].password
        self.assertNotEqual(stored, "securePass123")
        self.assertTrue(stored.startswith("$2"))

    def test_duplicate_email_rejected_without_hashing(self) -> None:
        store = InMemoryUserStore()
        service = _service(store)
        _create(service)
        with patch("app.services.auth.hash_password") as hash_mock:
            result = _create(service, email="JOHN@example.com ")
        self.assertEqual(result, DuplicateAccount(email="john@example.com"))
        hash_mock.assert_not_called()
        self.assertEqual(store.insert_calls, 1)

    def test_email_normalized_before_lookup_and_storage(self) -> None:
        store = InMemoryUserStore()
        result = _create(_service(store), email="  Foo@Bar.com ")
        self.assertEqual(result.user.email, "foo@bar.com")
        self.assertEqual(store.lookups, ["foo@bar.com"])
        self.assertIn("foo@bar.com", store.users)

    def test_role_defaults_to_user(self) -> None:
        result = _create(_service())
        self.assertEqual(result.user.role, "user")

    def test_admin_role_persisted(self) -> None:
        store = InMemoryUserStore()
        result = _create(_service(store), role="admin")
        self.assertEqual(result.user.role, "admin")
        self.assertEqual(store.users["john@example.com"].role, "admin")

    def test_unknown_role_is_a_caller_error(self) -> None:
        with self.assertRaises(ValueError):
            _create(_service(), role="owner")

    def test_name_length_is_a_caller_error(self) -> None:
        store = InMemoryUserStore()
        for name in ("", "   ", "J", "x" * 256):
            with self.subTest(name=name):
                with self.assertRaises(ValueError):
                    _create(_service(store), name=name)
        self.assertEqual(store.lookups, [])
        self.assertEqual(store.insert_calls, 0)

    def test_name_is_trimmed(self) -> None:
        result = _create(_service(), name="  John Doe ")
        self.assertEqual(result.user.name, "John Doe")

    def test_insert_conflict_is_provisioning_failure(self) -> None:
        store = InMemoryUserStore()
        store.conflict_on_insert = True
        result = _create(_service(store))
        self.assertIsInstance(result, ProvisioningFailure)

    def test_insert_error_is_provisioning_failure(self) -> None:
        store = InMemoryUserStore()
        store.fail_insert = True
        result = _create(_service(store))
        self.assertIsInstance(result, ProvisioningFailure)

    def test_lookup_error_is_provisioning_failure(self) -> None:
        store = InMemoryUserStore()
        store.fail_lookup = True
        result = _create(_service(store))
        self.assertIsInstance(result, ProvisioningFailure)
        self.assertEqual(store.insert_calls, 0)

    def test_hashing_error_is_hashing_failure(self) -> None:
        store = InMemoryUserStore()
        with patch("app.services.auth.hash_password", side_effect=PasswordHashingError()):
            result = _create(_service(store))
        self.assertIsInstance(result, HashingFailure)
        self.assertEqual(store.insert_calls, 0)


class TestAuthenticate(unittest.TestCase):
    """authenticate returns the stored identity or a single InvalidCredentials kind."""

    def setUp(self) -> None:
        self.store = InMemoryUserStore()
        self.service = _service(self.store)
        self.created = _create(self.service).user

    def test_correct_password(self) -> None:
        result = asyncio.run(self.service.authenticate("john@example.com", "securePass123"))
        self.assertIsInstance(result, Ok)
        self.assertEqual(result.user, self.created)

    def test_wrong_password(self) -> None:
        result = asyncio.run(self.service.authenticate("john@example.com", "wrong"))
        self.assertEqual(result, InvalidCredentials())

    def test_unknown_email_same_error_as_wrong_password(self) -> None:
        unknown = asyncio.run(self.service.authenticate("nobody@example.com", "securePass123"))
        wrong = asyncio.run(self.service.authenticate("john@example.com", "wrong"))
        self.assertEqual(unknown, wrong)

    def test_unknown_email_still_verifies_a_password(self) -> None:
        with patch("app.services.auth.verify_password", return_value=False) as verify_mock:
            result = asyncio.run(self.service.authenticate("nobody@example.com", "x"))
        self.assertIsInstance(result, InvalidCredentials)
        verify_mock.assert_called_once()

    def test_normalized_email_matches_same_account(self) -> None:
        store = InMemoryUserStore()
        service = _service(store)
        created = _create(service, email="Foo@Bar.com ").user
        result = asyncio.run(service.authenticate("foo@bar.com", "securePass123"))
        self.assertEqual(result, Ok(user=created))

    def test_lookup_error_is_lookup_failure(self) -> None:
        self.store.fail_lookup = True
        result = asyncio.run(self.service.authenticate("john@example.com", "securePass123"))
        self.assertIsInstance(result, LookupFailure)

    def test_corrupt_stored_hash_is_hashing_failure(self) -> None:
        self.store.users["john@example.com"].password = "not-a-bcrypt-hash"
        result = asyncio.run(self.service.authenticate("john@example.com", "securePass123"))
        self.assertIsInstance(result, HashingFailure)

    def test_password_never_logged(self) -> None:
        with self.assertLogs("app.services.auth", level="INFO") as logs:
            asyncio.run(self.service.authenticate("john@example.com", "securePass123"))
            asyncio.run(self.service.authenticate("john@example.com", "wrong-secret"))
        stored_hash = self.store.users["john@example.com"].password
        joined = "\n".join(logs.output)
        self.assertNotIn("securePass123", joined)
        self.assertNotIn("wrong-secret", joined)
        self.assertNotIn(stored_hash, joined)

    def test_unknown_email_dummy_hash_shared_across_services(self) -> None:
        asyncio.run(self.service.authenticate("nobody@example.com", "securePass123"))
        other = _service(InMemoryUserStore())
        with patch("app.services.auth.hash_password") as hash_mock:
            result = asyncio.run(other.authenticate("nobody@example.com", "securePass123"))
        self.assertIsInstance(result, InvalidCredentials)
        hash_mock.assert_not_called()
        self.assertIn(4, auth_service._dummy_hashes)


class TestStoreRunsOffEventLoop(unittest.TestCase):
    """Blocking store calls are pushed to a worker thread."""

    def test_create_and_authenticate(self) -> None:
        store = LoopRecordingStore()
        service = _service(store)
        _create(service)
        asyncio.run(service.authenticate("john@example.com", "securePass123"))
        self.assertEqual(store.on_loop, [False, False, False])
