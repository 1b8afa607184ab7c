"""
Unit tests for shared helpers
"""

import os
import sys
import unittest
from unittest.mock import patch

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from modules.utils import run_program


class TestRunProgram(unittest.TestCase):

    @patch('modules.utils.pulumi')
    def test_returns_result(self, mock_pulumi):
        @run_program
        def program(value):
            return value * 2

        self.assertEqual(program(21), 42)
        mock_pulumi.log.error.assert_not_called()

    @patch('modules.utils.pulumi')
    def test_logs_and_reraises(self, mock_pulumi):
        @run_program
        def program():
            raise RuntimeError("cluster unreachable")

        with self.assertRaises(RuntimeError):
            program()

        message = mock_pulumi.log.error.call_args.args[0]
        self.assertIn("cluster unreachable", message)
        self.assertIn("Traceback", message)

    def test_keeps_name(self):
        @run_program
        def deploy_platform():
            """Deploy"""

        self.assertEqual(deploy_platform.__name__, "deploy_platform")


if __name__ == '__main__':
    unittest.main()
