import os

import pandas as pd
import logging

# Create a logger for this module
logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ['name', 'source', 'detector']


def read_roi_table(file_path: str) -> pd.DataFrame:
    """
    Read ROI definitions from a .csv or Excel (.xlsx) table.

    The table has one row per source/detector pair; rows sharing a 'name'
    belong to the same ROI. Column names are matched case-insensitively.

    :param file_path: path to the ROI table
    :return: DataFrame with columns 'name', 'source', 'detector' (ints), in file order,
        ready for ROIMaker.add_roi_table
    """
    extension = os.path.splitext(file_path)[1].lower()
    if extension not in ('.csv', '.xlsx'):
        msg = f"Unsupported ROI table format '{extension}' for '{file_path}'."
        logger.error(msg)
        raise ValueError(msg)

    try:
        if extension == '.csv':
            table = pd.read_csv(file_path)
        else:
            table = pd.read_excel(file_path)
    except Exception as e:
        logger.error(f"Failed to open/read ROI table '{file_path}'. Error: {e}")
        raise

    return _clean_roi_table(table, file_path)


def _clean_roi_table(table: pd.DataFrame, file_path: str) -> pd.DataFrame:
    """
    Internal helper to normalize column names, check required columns and
    drop incomplete rows.
    """
    table = table.rename(columns={col: str(col).strip().lower() for col in table.columns})
    logger.debug(f"Columns in ROI table '{file_path}': {table.columns.tolist()}")

    missing = [col for col in REQUIRED_COLUMNS if col not in table.columns]
    if missing:
        msg = f"ROI table '{file_path}' is missing required columns: {missing}"
        logger.error(msg)
        raise ValueError(msg)

    table = table[REQUIRED_COLUMNS]
    incomplete = table.isna().any(axis=1)
    if incomplete.any():
        logger.warning(f"Dropping {int(incomplete.sum())} incomplete rows from ROI table '{file_path}'.")
        table = table[~incomplete]

    if table.empty:
        msg = f"ROI table '{file_path}' has no complete rows."
        logger.error(msg)
        raise ValueError(msg)

    table = table.assign(
        name=table['name'].astype(str).str.strip(),
        source=table['source'].astype(int),
        detector=table['detector'].astype(int)
    ).reset_index(drop=True)

    logger.info(f"Read {table['name'].nunique()} ROIs ({len(table)} channel pairs) from '{file_path}'")
    return table
