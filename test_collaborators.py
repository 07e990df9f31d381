from __future__ import annotations

import base64
import json
import logging
import sys
import tempfile
import textwrap
import unittest
from pathlib import Path

import httpx

from sandboxci.config import Settings
from sandboxci.context import ActionContext
from sandboxci.errors import SandboxError, WebhookError
from sandboxci.logging_config import SensitiveDataFilter
from sandboxci.runner import compress_output_if_exists, execute_command, run_tests_and_compress
from sandboxci.sandbox import check_node_liveness, create_sandbox
from sandboxci.webhook import build_webhook_payload, send_compressed_data


CTX = ActionContext(
    repo_owner="acme",
    repo_name="vault",
    run_id="42",
    commit_sha="0123456789abcdef",
    workflow_name="ci",
)

# Executed as "<python> test ..." inside the working directory: writes an
# output tree and exits with the code given as its first argument.
FAKE_RUNNER = textwrap.dedent(
    """
    import os, sys
    os.makedirs(os.path.join("bbOut", "traces"), exist_ok=True)
    with open(os.path.join("bbOut", "traces", "t1.json"), "w") as fh:
        fh.write('{"ok": true}')
    print("ran with", sys.argv[1:])
    print("warning line", file=sys.stderr)
    sys.exit(int(sys.argv[1]) if len(sys.argv) > 1 else 0)
    """
)


class ContextAndSettingsTests(unittest.TestCase):
    def test_context_from_env(self):
        ctx = ActionContext.from_env(
            {
                "GITHUB_REPOSITORY": "acme/vault",
                "GITHUB_RUN_ID": "42",
                "GITHUB_SHA": "abc",
                "GITHUB_WORKFLOW": "ci",
            }
        )
        self.assertEqual(ctx.repo_owner, "acme")
        self.assertEqual(ctx.repo_name, "vault")
        self.assertEqual(ctx.action_url, "https://github.com/acme/vault/actions/runs/42")

    def test_settings_from_env(self):
        s = Settings.from_env({"BUILDBEAR_TOKEN": "tok", "SANDBOXCI_JOBS": "3"})
        self.assertEqual(s.token, "tok")
        self.assertEqual(s.jobs, 3)
        self.assertEqual(s.resolved_webhook_url, "https://api.buildbear.io/ci/webhook")
        custom = Settings.from_env({"SANDBOXCI_WEBHOOK_URL": "http://hook.local/x"})
        self.assertEqual(custom.resolved_webhook_url, "http://hook.local/x")
        with self.assertRaises(ValueError):
            Settings.from_env({"SANDBOXCI_HTTP_TIMEOUT": "soon"})

    def test_sensitive_filter_masks_tokens(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "Authorization: Bearer %s", ("s3cr3t",), None)
        SensitiveDataFilter().filter(record)
        self.assertNotIn("s3cr3t", record.getMessage())


class RunnerTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.work = Path(self._tmp.name) / "project"
        self.work.mkdir()
        (self.work / "test").write_text(FAKE_RUNNER)
        self.archives = Path(self._tmp.name) / "archives"

    def test_execute_command_captures_output(self):
        res = execute_command(sys.executable, ["test", "3"], cwd=str(self.work))
        self.assertEqual(res.exit_code, 3)
        self.assertIn("ran with ['3']", res.stdout)
        self.assertIn("warning line", res.stderr)

    def test_run_success_compresses_output(self):
        run = run_tests_and_compress(
            str(self.work), ["0"], runner=sys.executable, output_dir=str(self.archives)
        )
        self.assertEqual(run.status, "success")
        comp = run.compression
        self.assertIsNotNone(comp.path)
        self.assertTrue(comp.path.name.startswith("bbOut_compressed_"))
        self.assertEqual(comp.metadata["fileCount"], 1)
        self.assertEqual(comp.metadata["originalSize"], len('{"ok": true}'))
        self.assertTrue(comp.metadata["compressionRatio"].endswith("%"))

    def test_run_failure_still_compresses(self):
        run = run_tests_and_compress(
            str(self.work), ["1"], runner=sys.executable, output_dir=str(self.archives)
        )
        self.assertEqual(run.status, "failed")
        self.assertEqual(run.compression.metadata["status"], "failed")
        self.assertIn("exit code 1", run.compression.metadata["message"])

    def test_missing_runner(self):
        run = run_tests_and_compress(
            str(self.work), runner="definitely-not-a-test-runner", output_dir=str(self.archives)
        )
        self.assertEqual(run.result.exit_code, 1)
        # nothing produced bbOut, so nothing to compress
        self.assertIsNone(run.compression.path)

    def test_missing_or_empty_directory(self):
        self.assertIsNone(compress_output_if_exists(str(self.work)).path)
        (self.work / "bbOut").mkdir()
        self.assertIsNone(compress_output_if_exists(str(self.work), output_dir=str(self.archives)).path)


class WebhookTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.archive = Path(self._tmp.name) / "bbOut_compressed_1.gz"
        self.archive.write_bytes(b"\x1f\x8bfake")
        self.settings = Settings(token="tok", webhook_url="http://hook.local/ci/webhook")

    def test_payload_shape(self):
        body = build_webhook_payload(str(self.archive), CTX, {"status": "failed", "fileCount": 2})
        self.assertEqual(body["status"], "failed")
        self.assertEqual(body["task"], "simulate_test")
        p = body["payload"]
        self.assertEqual(p["repositoryName"], "vault")
        self.assertEqual(p["commitHash"], CTX.commit_sha)
        self.assertEqual(p["actionUrl"], CTX.action_url)
        art = p["testsArtifacts"]
        self.assertEqual(art["filename"], self.archive.name)
        self.assertEqual(art["contentType"], "application/gzip")
        self.assertEqual(base64.b64decode(art["data"]), self.archive.read_bytes())
        self.assertEqual(art["metadata"]["fileCount"], 2)
        self.assertEqual(art["metadata"]["originalSize"], 0)

    def test_send_posts_with_bearer(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"received": True})

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            reply = send_compressed_data(str(self.archive), CTX, self.settings, {}, client=client)
        self.assertEqual(reply, {"received": True})
        self.assertEqual(seen["auth"], "Bearer tok")
        self.assertEqual(seen["url"], "http://hook.local/ci/webhook")
        self.assertEqual(seen["body"]["status"], "success")

    def test_send_error_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
        with httpx.Client(transport=transport) as client:
            with self.assertRaises(WebhookError):
                send_compressed_data(str(self.archive), CTX, self.settings, client=client)

    def test_send_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            with self.assertRaises(WebhookError):
                send_compressed_data(str(self.archive), CTX, self.settings, client=client)


class SandboxTests(unittest.TestCase):
    def test_create_sandbox(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"rpcUrl": "http://rpc.local/abc", "mnemonic": "test test"})

        settings = Settings(api_base_url="http://api.local", token="tok")
        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            node = create_sandbox(settings, repo_name="vault", commit_sha=CTX.commit_sha, chain_id=1, client=client)
        self.assertEqual(node.rpc_url, "http://rpc.local/abc")
        self.assertEqual(seen["url"], "http://api.local/v1/buildbear-sandbox")
        self.assertEqual(seen["body"]["chainId"], 1)
        self.assertNotIn("blockNumber", seen["body"])
        self.assertTrue(node.sandbox_id.startswith("vault-01234567-"))

    def test_create_sandbox_requires_token(self):
        with self.assertRaises(SandboxError):
            create_sandbox(Settings(), repo_name="r", commit_sha="c", chain_id=1)

    def test_create_sandbox_bad_reply(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"nope": 1}))
        with httpx.Client(transport=transport) as client:
            with self.assertRaises(SandboxError):
                create_sandbox(Settings(token="t"), repo_name="r", commit_sha="c", chain_id=1, client=client)

    def test_liveness_eventually_live(self):
        calls = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["n"] += 1
            self.assertEqual(json.loads(request.content)["method"], "eth_chainId")
            if calls["n"] < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "0x1"})

        sleeps = []
        with httpx.Client(transport=httpx.MockTransport(handler)) as client:
            live = check_node_liveness("http://rpc.local", client=client, sleep=sleeps.append)
        self.assertTrue(live)
        self.assertEqual(calls["n"], 3)
        self.assertEqual(len(sleeps), 2)

    def test_liveness_gives_up(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"error": "not ready"}))
        sleeps = []
        with httpx.Client(transport=transport) as client:
            live = check_node_liveness("http://rpc.local", max_retries=3, client=client, sleep=sleeps.append)
        self.assertFalse(live)
        self.assertEqual(len(sleeps), 2)


if __name__ == "__main__":
    unittest.main()
