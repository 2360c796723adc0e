"""Smoke tests for the swap-harness command line."""

import json
import os
import unittest
from contextlib import redirect_stderr, redirect_stdout
from io import StringIO
from unittest import mock

from harness_cli.cli import main

FAST_ARGS = ["--poll-interval", "0.01", "--poll-deadline", "10"]


class HarnessCliTests(unittest.TestCase):
    def _run(self, args):
        out, err = StringIO(), StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = main(args)
        return code, out.getvalue(), err.getvalue()

    def test_list_names_every_scenario(self) -> None:
        code, output, _ = self._run(["list"])

        self.assertEqual(code, 0)
        self.assertIn("bitcoin-high-fee", output)
        self.assertIn("orderbook-hbit-herc20", output)

    def test_run_high_fee_scenario(self) -> None:
        with mock.patch.dict(os.environ, {"SWAP_HARNESS_BLOCK_INTERVAL": "0.01"}):
            code, output, _ = self._run(
                ["run", "--scenario", "bitcoin-high-fee", "--simulated"] + FAST_ARGS
            )

        self.assertEqual(code, 0)
        payload = json.loads(output)
        self.assertEqual(payload["scenario"], "bitcoin-high-fee")
        self.assertEqual([s["status_code"] for s in payload["steps"]][-2:], [400, 400])

    def test_unknown_scenario_is_an_error(self) -> None:
        code, _, err = self._run(["run", "--scenario", "nope"])

        self.assertEqual(code, 2)
        self.assertIn("ERROR:", err)

    def test_bad_environment_is_an_error(self) -> None:
        with mock.patch.dict(os.environ, {"SWAP_HARNESS_POLL_INTERVAL": "fast"}):
            code, _, err = self._run(["run", "--scenario", "decline"])

        self.assertEqual(code, 2)
        self.assertIn("SWAP_HARNESS_POLL_INTERVAL", err)

    def test_failed_scenario_exits_with_one(self) -> None:
        code, _, err = self._run(
            ["run", "--scenario", "ether-bitcoin-happy-path", "--simulated", "--balance-tolerance", "0"]
            + FAST_ARGS
        )

        self.assertEqual(code, 1)
        self.assertIn("FAILED:", err)


if __name__ == "__main__":
    unittest.main()
