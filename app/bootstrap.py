"""
Environment bootstrap.

Creates the data and log directories and writes a .env template with every
setting the service reads. Existing files are never overwritten.

Usage:
    aidledger-setup [--dir PATH]
"""

import argparse
from pathlib import Path
from typing import Optional

DIRECTORIES = ("data", "logs")

ENV_TEMPLATE = """\
# Aid Ledger environment
HOST=127.0.0.1
PORT=3000
LOG_LEVEL=INFO
MIN_PASSWORD_LENGTH=6

# Ledger store
DB_URL=sqlite:///./data/aidledger.db
DB_BUSY_TIMEOUT_SECONDS=30

# Default administrator (change the password)
ADMIN_NAME=System Admin
ADMIN_EMAIL=admin@empowerkibuye.org
ADMIN_PASSWORD=admin123

# Donations
DONATION_MIN_AMOUNT=1000
DONATION_MAX_AMOUNT=10000000
DONATION_CURRENCY=RWF

# Payments (simulated)
PAYMENT_ORGANIZATION_NAME=Empower Kibuye
PAYMENT_MOBILE_MONEY_SUCCESS_RATE=0.9
PAYMENT_CARD_SUCCESS_RATE=0.95
PAYMENT_MOBILE_MONEY_DELAY_SECONDS=2.0
PAYMENT_CARD_DELAY_SECONDS=1.5
"""


def bootstrap(root: Path) -> list[str]:
    """
    Prepare root for running the service.

    Returns:
        One line per action taken or skipped
    """
    report = []
    for name in DIRECTORIES:
        path = root / name
        if path.exists():
            report.append(f"Directory already exists: {name}")
        else:
            path.mkdir(parents=True)
            report.append(f"Created directory: {name}")

    env_path = root / ".env"
    if env_path.exists():
        report.append(".env file already exists")
    else:
        env_path.write_text(ENV_TEMPLATE, encoding="utf-8")
        report.append("Created .env file with default configuration")

    return report


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Prepare an Aid Ledger environment")
    parser.add_argument(
        "--dir",
        default=".",
        help="Directory to set up (default: current directory)",
    )
    args = parser.parse_args(argv)

    root = Path(args.dir).resolve()
    print(f"Setting up Aid Ledger in {root}\n")
    for line in bootstrap(root):
        print(f"  {line}")
    print("\nNext: edit .env, then run aidledger-server")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
