"""
Mail Client Integration Tests

Runs every command end to end against the in-memory mail server, through
both the MailClient API and the command-line entry point.
"""

import contextlib
import io
import os
import shutil
import tempfile
import unittest

from mail_client import run_client
from mail_client.common.args import base64_encode
from mail_client.common.config import ClientConfig
from mail_client.common.errors import MissingTokenError, ProtocolError, ServerConnectionError
from mail_client.sexp_protocol import protocol
from mail_client.sexp_protocol.client import MailClient
from mail_client.sexp_protocol.tests import mock_server


class TestMailClientIntegration(unittest.TestCase):
    """End-to-end flows through MailClient"""

    @classmethod
    def setUpClass(cls):
        """Start server in a separate thread"""
        cls.server, cls.server_thread = mock_server.start_server()
        cls.server_port = cls.server.server_address[1]

    @classmethod
    def tearDownClass(cls):
        """Stop the server"""
        mock_server.stop_server(cls.server, cls.server_thread)

    def setUp(self):
        """Fresh server state and token directory for every test"""
        self.server.mail_server.reset()
        self.temp_dir = tempfile.mkdtemp()
        self.token_path = os.path.join(self.temp_dir, "login-token")
        self.config = ClientConfig(
            address="127.0.0.1",
            is_v6=False,
            port=self.server_port,
            token_path=self.token_path,
        )
        self.client = MailClient(self.config)

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def register_and_login(self, username, password):
        self.client.register(username, base64_encode(password))
        return self.client.login(username, base64_encode(password))

    def test_register(self):
        result = self.client.register("alice", base64_encode("secret"))
        self.assertEqual(result, protocol.MessageResult(protocol.CommandKind.REGISTER,
                                                        "registered user alice"))
        self.assertEqual(self.server.mail_server.requests[-1],
                         '(register "alice" "c2VjcmV0")')

    def test_register_twice(self):
        self.client.register("alice", base64_encode("secret"))
        result = self.client.register("alice", base64_encode("other"))
        self.assertIsInstance(result, protocol.ErrorResult)
        self.assertEqual(result.message, "user already registered")

    def test_login_saves_token(self):
        result = self.register_and_login("alice", "secret")
        self.assertIsInstance(result, protocol.LoginResult)
        self.assertEqual(result.greeting, "user logged in")
        with open(self.token_path) as token_file:
            self.assertEqual(token_file.read(), result.token)

    def test_failed_login_keeps_no_token(self):
        self.client.register("alice", base64_encode("secret"))
        result = self.client.login("alice", base64_encode("wrong"))
        self.assertIsInstance(result, protocol.ErrorResult)
        self.assertFalse(os.path.exists(self.token_path))

    def test_send_list_fetch(self):
        self.client.register("bob", base64_encode("pw"))
        self.register_and_login("alice", "secret")
        self.assertEqual(self.client.send_message("bob", "hi", "first").message, "message sent")

        self.client.login("bob", base64_encode("pw"))
        listing = self.client.list_messages()
        self.assertEqual(listing.items, [protocol.ListItem("1", "alice", "hi")])

        message = self.client.fetch_message("1")
        self.assertEqual(message, protocol.FetchResult("alice", "hi", ["first"]))
        self.assertEqual(self.server.mail_server.requests[-1][:7], "(fetch ")
        self.assertTrue(self.server.mail_server.requests[-1].endswith(" 1)"))

    def test_special_characters_survive(self):
        self.register_and_login("alice", "secret")
        subject = 'a "quoted" \\ subject'
        body = "line one\\nline \"two\"\\nback\\\\slash"
        self.client.send_message("alice", subject, body)

        listing = self.client.list_messages()
        self.assertEqual(listing.items[0].subject, subject)
        message = self.client.fetch_message("1")
        self.assertEqual(message.subject, subject)
        self.assertEqual(message.body_lines, ["line one", 'line "two"', "back\\\\slash"])

    def test_list_empty_mailbox(self):
        self.register_and_login("alice", "secret")
        self.assertEqual(self.client.list_messages().items, [])

    def test_fetch_unknown_id(self):
        self.register_and_login("alice", "secret")
        result = self.client.fetch_message("9")
        self.assertEqual(result, protocol.ErrorResult("message id not found"))

    def test_logout_deletes_token(self):
        self.register_and_login("alice", "secret")
        result = self.client.logout()
        self.assertEqual(result.message, "logged out")
        self.assertFalse(os.path.exists(self.token_path))

    def test_rejected_logout_keeps_token(self):
        with open(self.token_path, "w") as token_file:
            token_file.write("stale")
        result = self.client.logout()
        self.assertIsInstance(result, protocol.ErrorResult)
        self.assertTrue(os.path.exists(self.token_path))

    def test_authenticated_command_without_token(self):
        with self.assertRaises(MissingTokenError):
            self.client.list_messages()
        self.assertEqual(self.server.mail_server.requests, [])


class TestCutOffResponses(unittest.TestCase):
    """A server that closes the connection in the middle of a response"""

    @classmethod
    def setUpClass(cls):
        """Start server in a separate thread"""
        cls.server, cls.server_thread = mock_server.start_server(mock_server.ScriptedRequestHandler)
        cls.server_port = cls.server.server_address[1]

    @classmethod
    def tearDownClass(cls):
        """Stop the server"""
        mock_server.stop_server(cls.server, cls.server_thread)

    def setUp(self):
        self.server.delay = 0.0
        self.server.keep_open = False
        self.temp_dir = tempfile.mkdtemp()
        self.token_path = os.path.join(self.temp_dir, "login-token")
        self.client = MailClient(ClientConfig(
            address="127.0.0.1",
            is_v6=False,
            port=self.server_port,
            token_path=self.token_path,
        ))

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_cut_off_login_saves_no_token(self):
        self.server.script = [b'(ok "welcome" "TOK-12']
        with self.assertRaises(ProtocolError):
            self.client.login("alice", base64_encode("secret"))
        self.assertFalse(os.path.exists(self.token_path))

    def test_cut_off_logout_keeps_token(self):
        with open(self.token_path, "w") as token_file:
            token_file.write("TOK-1")
        self.server.script = [b'(ok "logged o']
        with self.assertRaises(ProtocolError):
            self.client.logout()
        self.assertTrue(os.path.exists(self.token_path))

    def test_cut_off_listing(self):
        with open(self.token_path, "w") as token_file:
            token_file.write("TOK-1")
        self.server.script = [b'(ok ((1 "bob" "a) (b") (2 "eve']
        with self.assertRaises(ProtocolError):
            self.client.list_messages()


class TestCommandLine(unittest.TestCase):
    """The mail-client entry point"""

    @classmethod
    def setUpClass(cls):
        """Start server in a separate thread"""
        cls.server, cls.server_thread = mock_server.start_server()
        cls.server_port = cls.server.server_address[1]

    @classmethod
    def tearDownClass(cls):
        """Stop the server"""
        mock_server.stop_server(cls.server, cls.server_thread)

    def setUp(self):
        self.server.mail_server.reset()
        self.temp_dir = tempfile.mkdtemp()
        self.token_path = os.path.join(self.temp_dir, "login-token")

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def run_client(self, *argv, port=None):
        """Run main() and return (exit status, stdout, stderr)"""
        port = self.server_port if port is None else port
        stdout = io.StringIO()
        stderr = io.StringIO()
        args = ["-a", "127.0.0.1", "-p", str(port), "--token-file", self.token_path, *argv]
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            status = run_client.main(args)
        return status, stdout.getvalue(), stderr.getvalue()

    def test_session(self):
        status, out, _ = self.run_client("register", "alice", "secret")
        self.assertEqual((status, out), (0, "SUCCESS: registered user alice\n"))

        status, out, _ = self.run_client("login", "alice", "secret")
        self.assertEqual((status, out), (0, "SUCCESS: user logged in\n"))

        status, out, _ = self.run_client("send", "alice", "hello", "line1\\nline2")
        self.assertEqual((status, out), (0, "SUCCESS: message sent\n"))

        status, out, _ = self.run_client("list")
        self.assertEqual(out, "SUCCESS: \n1: \n  From: alice\n  Subject: hello\n")

        status, out, _ = self.run_client("fetch", "1")
        self.assertEqual(out, "SUCCESS: \n\nFrom: alice\nSubject: hello\n\nline1\nline2\n")

        status, out, _ = self.run_client("logout")
        self.assertEqual((status, out), (0, "SUCCESS: logged out\n"))
        self.assertFalse(os.path.exists(self.token_path))

    def test_server_error_is_printed(self):
        status, out, _ = self.run_client("login", "nobody", "pw")
        self.assertEqual(status, 0)
        self.assertEqual(out, "ERROR: incorrect password\n")

    def test_missing_token(self):
        status, out, err = self.run_client("list")
        self.assertEqual(status, 1)
        self.assertEqual(out, "")
        self.assertIn("ERR: Login token could not be obtained", err)

    def test_connection_failure(self):
        self.server.mail_server.reset()
        status, out, err = self.run_client("register", "a", "b", port=1)
        self.assertEqual(status, 1)
        self.assertIn("ERR: Unable to connect to server", err)

    def test_connection_failure_through_client(self):
        config = ClientConfig(address="127.0.0.1", is_v6=False, port=1, token_path=self.token_path)
        with self.assertRaises(ServerConnectionError):
            MailClient(config).register("a", "b")


if __name__ == '__main__':
    unittest.main(verbosity=2)
