from cryptography.fernet import Fernet

from models.slack_installation import SlackInstallation
from services.token_store import (
    PROVIDER_GITHUB,
    PROVIDER_SLACK,
    IntegrationNotConnected,
    TokenDecryptionError,
    decrypt_token,
    encrypt_token,
    get_github_token,
    resolve_token,
    store_github_token,
)
from tests.utils.db import AppTestCase


class TokenCipherTestCase(AppTestCase):
    def test_round_trip(self):
        with self.app.app_context():
            ciphertext = encrypt_token("ghp_example")
            self.assertNotIn(b"ghp_example", ciphertext)
            self.assertEqual(decrypt_token(ciphertext), "ghp_example")

    def test_encryption_is_randomised(self):
        with self.app.app_context():
            self.assertNotEqual(encrypt_token("same"), encrypt_token("same"))

    def test_empty_token_is_rejected(self):
        with self.app.app_context():
            with self.assertRaises(ValueError):
                encrypt_token("")

    def test_decrypt_with_wrong_key_raises(self):
        foreign = Fernet(Fernet.generate_key()).encrypt(b"ghp_example")
        with self.app.app_context():
            with self.assertRaises(TokenDecryptionError):
                decrypt_token(foreign)

    def test_rotated_key_is_fatal(self):
        with self.app.app_context():
            ciphertext = encrypt_token("ghp_example")
        self.app.config["ENCRYPTION_KEY"] = "another-key"
        with self.app.app_context():
            with self.assertRaises(TokenDecryptionError):
                decrypt_token(ciphertext)


class ResolveTokenTestCase(AppTestCase):
    def setUp(self):
        super().setUp()
        self.user_id = self.create_user("resolver")

    def test_missing_github_token_raises(self):
        with self.app.app_context():
            with self.assertRaises(IntegrationNotConnected) as ctx:
                resolve_token(self.user_id, PROVIDER_GITHUB)
        self.assertEqual(ctx.exception.provider, PROVIDER_GITHUB)
        self.assertIn("GitHub not connected", str(ctx.exception))

    def test_stored_token_is_upserted(self):
        with self.app.app_context():
            store_github_token(self.user_id, "first", login="octocat")
            self.db.session.commit()
            store_github_token(self.user_id, "second", login="octocat")
            self.db.session.commit()
            self.assertEqual(get_github_token(self.user_id), "second")
            self.assertEqual(resolve_token(self.user_id, PROVIDER_GITHUB), "second")

    def test_session_token_takes_precedence(self):
        with self.app.app_context():
            store_github_token(self.user_id, "stored", login="octocat")
            self.db.session.commit()
            self.assertEqual(
                resolve_token(self.user_id, PROVIDER_GITHUB, session_token="attached"),
                "attached",
            )

    def test_slack_bot_token(self):
        with self.app.app_context():
            with self.assertRaises(IntegrationNotConnected):
                resolve_token(self.user_id, PROVIDER_SLACK)
            self.db.session.add(
                SlackInstallation(
                    team_id="T1",
                    user_id=self.user_id,
                    bot_access_token_encrypted=encrypt_token("xoxb-bot"),
                )
            )
            self.db.session.commit()
            self.assertEqual(resolve_token(self.user_id, PROVIDER_SLACK), "xoxb-bot")

    def test_unknown_provider(self):
        with self.app.app_context():
            with self.assertRaises(ValueError):
                resolve_token(self.user_id, "gitlab")
