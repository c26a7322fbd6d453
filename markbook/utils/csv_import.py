"""
CSV format for roster upload:
Expected columns (header names are case-insensitive):
- email: Login email address (required)
- username: Display name (required)
- classcode: Class code (optional, falls back to the class code sent with the upload)

Example CSV format:
```
email,username,classcode
john.doe@example.com,John Doe,10A
jane.smith@example.com,Jane Smith,
```
"""
import csv
from dataclasses import dataclass, field
from io import StringIO
from typing import List, Optional

REQUIRED_HEADERS = ("email", "username")
BOM = "\ufeff"


class CSVFormatError(Exception):
    """Custom exception for CSV format errors"""
    pass


@dataclass
class RosterRow:
    line_number: int
    email: str
    user_name: str
    class_code: str


@dataclass
class RosterParseResult:
    rows: List[RosterRow] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return len(self.errors)


def _normalise_header(header: str) -> str:
    return (header or "").replace(BOM, "").strip().lower()


def parse_roster(content: str, default_class_code: str) -> RosterParseResult:
    """
    Extract student rows from roster CSV content.

    Args:
        content: CSV text with a header row
        default_class_code: Class code used when the row has none

    Returns:
        Parsed rows plus a message for every skipped row

    Raises:
        CSVFormatError: If the content is empty or the header lacks a required column
    """
    reader = csv.reader(StringIO(content))
    try:
        header = [_normalise_header(h) for h in next(reader)]
    except StopIteration:
        raise CSVFormatError("CSV appears empty or invalid")

    missing = [name for name in REQUIRED_HEADERS if name not in header]
    if missing:
        raise CSVFormatError("CSV must include email and userName columns")

    email_idx = header.index("email")
    user_idx = header.index("username")
    class_idx: Optional[int] = header.index("classcode") if "classcode" in header else None

    result = RosterParseResult()
    line_number = 1  # Header is line 1
    for row in reader:
        line_number += 1
        # Skip completely empty rows
        if not any(value.strip() for value in row):
            continue

        def cell(idx: Optional[int]) -> str:
            if idx is None or idx >= len(row):
                return ""
            return row[idx].strip()

        email = cell(email_idx)
        user_name = cell(user_idx)
        class_code = cell(class_idx) or default_class_code.strip()

        if not email or not user_name:
            result.errors.append(f"Row {line_number}: missing email or userName")
            continue
        if "@" not in email:
            result.errors.append(f"Row {line_number}: invalid email format '{email}'")
            continue
        if not class_code:
            result.errors.append(f"Row {line_number}: missing classCode")
            continue

        result.rows.append(RosterRow(line_number, email, user_name, class_code))

    return result
