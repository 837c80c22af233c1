"""
JSON file ledger of blood tests.

The ledger file holds the interchange format: a JSON list of BloodTest
objects. Writes go to a temporary file in the same directory which then
replaces the ledger, so a crash never leaves a half-written file behind.
"""

import json
import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile

from pydantic import ValidationError as PydanticValidationError

from blood_work_analyzer.domain.blood_test import BloodTest
from blood_work_analyzer.utils.exceptions import StorageError

logger = logging.getLogger(__name__)


class LedgerStore:
    """
    Persistent list of blood tests backed by one JSON file.

    Blood tests are immutable; the store only adds and deletes them wholesale.
    """

    def __init__(self, path: str | Path) -> None:
        """
        Initialize ledger store.

        Args:
            path: Ledger JSON file. It is created on first save.
        """
        self.path = Path(path)
        self._tests: list[BloodTest] | None = None

    def load(self) -> list[BloodTest]:
        """
        Read the ledger file.

        Returns:
            Stored blood tests; empty when the file does not exist yet.

        Raises:
            StorageError: If the file cannot be read or is not a valid ledger.
        """
        if not self.path.exists():
            logger.debug(f"Ledger {self.path} does not exist yet")
            self._tests = []
            return []

        try:
            with open(self.path, encoding="utf-8") as f:
                document = json.load(f)
            if not isinstance(document, list):
                raise StorageError(f"Ledger {self.path} is not a list of blood tests")
            self._tests = [BloodTest.model_validate(entry) for entry in document]

        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read ledger {self.path}: {e}") from e
        except PydanticValidationError as e:
            raise StorageError(f"Invalid blood test in ledger {self.path}: {e}") from e

        logger.debug(f"Loaded {len(self._tests)} blood tests from {self.path}")
        return list(self._tests)

    def save(self, tests: list[BloodTest] | None = None) -> None:
        """
        Write the ledger atomically.

        The in-memory ledger is replaced by ``tests`` only once the file has
        been written, so a failed save leaves the store as it was.

        Args:
            tests: New ledger contents. The currently loaded tests when omitted.

        Raises:
            StorageError: If the file cannot be written.
        """
        if tests is None:
            tests = self._all()

        tmp_path: Path | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_path = Path(tmp.name)
                json.dump([t.to_dict() for t in tests], tmp, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)

        except OSError as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write ledger {self.path}: {e}") from e

        self._tests = list(tests)
        logger.debug(f"Saved {len(tests)} blood tests to {self.path}")

    def _all(self) -> list[BloodTest]:
        if self._tests is None:
            self.load()
        assert self._tests is not None
        return self._tests

    def list_tests(self) -> list[BloodTest]:
        """All stored blood tests, newest first."""
        return sorted(self._all(), key=lambda t: t.date, reverse=True)

    def get(self, test_id: str) -> BloodTest | None:
        """Blood test with the given ID, if stored."""
        return next((t for t in self._all() if t.id == test_id), None)

    def add(self, test: BloodTest) -> bool:
        """
        Add a blood test and save the ledger.

        Adding a test whose ID is already stored is a no-op.

        Args:
            test: Blood test to add.

        Returns:
            True when the test was added, False when it was already stored.
        """
        if self.get(test.id) is not None:
            logger.info(f"Blood test {test.id[:12]} already stored, skipping")
            return False

        self.save([*self._all(), test])
        logger.info(f"Stored {test.test_type} from {test.date.date().isoformat()}")
        return True

    def add_many(self, tests: list[BloodTest]) -> int:
        """
        Add several blood tests with a single save.

        Returns:
            Number of tests actually added.
        """
        stored = list(self._all())
        known = {t.id for t in stored}
        added = 0

        for test in tests:
            if test.id in known:
                continue
            stored.append(test)
            known.add(test.id)
            added += 1

        if added:
            self.save(stored)
        logger.info(f"Stored {added} of {len(tests)} blood tests")
        return added

    def delete(self, test_id: str) -> bool:
        """
        Delete a blood test and save the ledger.

        Args:
            test_id: ID of the test to delete.

        Returns:
            True when a test was deleted.
        """
        stored = self._all()
        remaining = [t for t in stored if t.id != test_id]
        if len(remaining) == len(stored):
            logger.warning(f"No blood test with id {test_id}")
            return False

        self.save(remaining)
        logger.info(f"Deleted blood test {test_id[:12]}")
        return True

    def history(self, test_type: str) -> list[BloodTest]:
        """Blood tests of one type, newest first."""
        return [t for t in self.list_tests() if t.test_type == test_type]

    def most_recent(self, test_type: str | None = None) -> BloodTest | None:
        """Newest blood test, optionally of one type."""
        tests = self.history(test_type) if test_type else self.list_tests()
        return tests[0] if tests else None
