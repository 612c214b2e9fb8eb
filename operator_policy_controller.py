#!/usr/bin/env python3
"""
OperatorPolicy Controller.

One-shot runner: reconciles a single OperatorPolicy and exits. The reconcile
logic lives in operator_policy.libs; this script is only the entry point.
"""

import sys
from operator_policy.libs.main_app import main


if __name__ == "__main__":
    sys.exit(main())
