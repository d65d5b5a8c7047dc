import io
import logging
from typing import Any, Dict, List

import pandas as pd

from dispatch_core.exceptions import SpreadsheetParseError

logger = logging.getLogger(__name__)

SPREADSHEET_EXTENSIONS = ('.xlsx', '.xls')


def is_spreadsheet_filename(filename) -> bool:
    return bool(filename) and filename.lower().endswith(SPREADSHEET_EXTENSIONS)


def read_first_sheet(content: bytes) -> List[Dict[str, Any]]:
    """
    Read the first worksheet of an Excel workbook into header -> value rows.

    Empty cells come back as None. Cell types are left as the workbook
    stores them; the normalizers decide how to coerce each column.

    Raises:
        SpreadsheetParseError: the bytes are not a readable workbook.
    """
    if not content:
        raise SpreadsheetParseError("Spreadsheet is empty")

    try:
        frame = pd.read_excel(io.BytesIO(content), sheet_name=0, dtype=object)
    except Exception as e:
        # openpyxl/xlrd raise their own exception types for corrupt archives
        logger.error(f"Failed to read spreadsheet: {e}", exc_info=True)
        raise SpreadsheetParseError("Excel file could not be read", details=str(e)) from e

    frame = frame.dropna(how='all')
    frame = frame.astype(object).where(pd.notna(frame), None)
    rows = frame.to_dict(orient='records')
    logger.debug(f"Read {len(rows)} rows with columns {list(frame.columns)}")
    return rows
