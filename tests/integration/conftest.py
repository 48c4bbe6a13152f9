# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures for integration tests.

Builds a small full-stack project on disk (schema, API DTOs, services) and
the extractor records describing its functions.
"""

from pathlib import Path
from typing import Any, Dict, List

import pytest

SCHEMA = """\
datasource db {
  provider = "postgresql"
}

model Money {
  id       Int    @id @default(autoincrement())
  amount   Int
  currency String
}

model User {
  id    Int    @id
  email String @unique
  @@map("users")
}
"""

DTO = """\
export interface Money {
  amount: number;
  currency: string;
}

export interface UserDTO {
  id: number;
  email: string;
}
"""

SERVICE = """\
import { getBalance } from "../wallet/coins";

export async function chargeCustomer(amount: Money): Promise<Money> {
  console.log("charging");
  getBalance("u1");
  return saveCharge(amount);
}

function saveCharge(amount: Money) {
  return amount;
}
"""

COINS = """\
export type Coin = { value: number };

export function getBalance(userId: string): Coin {
  return fetchRemote(userId);
}
"""

INDEX = """\
import { chargeCustomer } from "./payments/service";

chargeCustomer({ amount: 1, currency: "EUR" });
"""


@pytest.fixture
def sample_project(tmp_path: Path) -> Path:
    """Create a representative full-stack project for integration testing.

    Layout:
        prisma/schema.prisma        database layer (Money, User)
        src/api/dto.ts              API layer (Money, UserDTO)
        src/payments/service.ts     chargeCustomer -> getBalance, saveCharge
        src/wallet/coins.ts         Coin, getBalance
        src/index.ts                top-level entry point

    Returns:
        Path to the project root directory
    """
    project_root = tmp_path / "sample_project"
    files = {
        "prisma/schema.prisma": SCHEMA,
        "src/api/dto.ts": DTO,
        "src/payments/service.ts": SERVICE,
        "src/wallet/coins.ts": COINS,
        "src/index.ts": INDEX,
    }
    for relative, text in files.items():
        path = project_root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    return project_root


@pytest.fixture
def sample_records(sample_project: Path) -> List[Dict[str, Any]]:
    """Extractor records for the sample project, as a front end would emit them."""

    def path(relative: str) -> str:
        return str(sample_project / relative)

    return [
        {"path": path("prisma/schema.prisma"), "language": "prisma"},
        {"path": path("src/api/dto.ts"), "language": "typescript"},
        {
            "path": path("src/payments/service.ts"),
            "language": "typescript",
            "functions": [
                {
                    "name": "chargeCustomer",
                    "params": ["amount: Money"],
                    "returns": "Promise<Money>",
                    "calls": ["log", "getBalance", "saveCharge"],
                    "isExported": True,
                    "line": 3,
                },
                {"name": "saveCharge", "params": ["amount: Money"], "line": 9},
            ],
        },
        {
            "path": path("src/wallet/coins.ts"),
            "language": "typescript",
            "functions": [
                {
                    "name": "getBalance",
                    "params": ["userId: string"],
                    "returns": "Coin",
                    "calls": ["fetchRemote"],
                    "isExported": True,
                    "line": 3,
                }
            ],
        },
        {
            "path": path("src/index.ts"),
            "language": "typescript",
            "functions": [{"name": "main", "calls": ["chargeCustomer"], "line": 1}],
        },
    ]
