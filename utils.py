import dataclasses
import io  # Required for Excel export
from decimal import Decimal, Context, localcontext, MAX_PREC, MAX_EMAX, MIN_EMIN

import pandas as pd
from joblib import Parallel, delayed

from business_rules import PARALLEL_RULES

# --- Constants ---
MONTH_ORDER = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December'
]

ZERO = Decimal(0)

# Additions and subtractions are exact in this context
EXACT_CONTEXT = Context(prec=MAX_PREC, Emax=MAX_EMAX, Emin=MIN_EMIN)

# Divisions and square roots are rounded to 28 significant digits
RATIO_CONTEXT = Context(prec=28)


# --- Decimal Arithmetic ---

def exact_sum(values) -> Decimal:
    """
    Sum decimal values without rounding.

    Args:
        values: Iterable of Decimal

    Returns:
        Decimal: Exact sum (0 for an empty iterable)
    """
    with localcontext(EXACT_CONTEXT):
        return sum(values, ZERO)


def exact_difference(minuend, subtrahend) -> Decimal:
    """Subtract two decimals without rounding."""
    with localcontext(EXACT_CONTEXT):
        return minuend - subtrahend


def safe_divide(numerator, denominator, default=ZERO) -> Decimal:
    """Divide two decimals, returning `default` when the denominator is zero."""
    if denominator == 0:
        return default
    with localcontext(RATIO_CONTEXT):
        return Decimal(numerator) / Decimal(denominator)


def decimal_mean(values) -> Decimal:
    """Arithmetic mean of a decimal sequence (0 when empty)."""
    values = list(values)
    if not values:
        return ZERO
    return safe_divide(exact_sum(values), len(values))


def decimal_pstdev(values) -> Decimal:
    """Population standard deviation of a decimal sequence (0 for < 2 values)."""
    values = list(values)
    if len(values) < 2:
        return ZERO
    mean = decimal_mean(values)
    with localcontext(RATIO_CONTEXT):
        variance = exact_sum((v - mean) * (v - mean) for v in values) / len(values)
        return variance.sqrt()


def clamp(value, lower, upper):
    return max(lower, min(upper, value))


# --- Parallel Fan-Out ---

def map_in_parallel(func, items, n_jobs=None):
    """
    Apply a pure function to every item, fanning out across threads when the
    work list is large enough.

    Args:
        func: Pure function of one argument
        items: List of inputs
        n_jobs: Number of worker threads. None picks a count from
                PARALLEL_RULES (sequential for small lists); 1 forces
                sequential execution.

    Returns:
        list: Results in input order
    """
    items = list(items)
    if n_jobs is None:
        if len(items) > PARALLEL_RULES["min_items"]:
            n_jobs = min(PARALLEL_RULES["max_jobs"], len(items) // PARALLEL_RULES["min_items"])
        else:
            n_jobs = 1

    if n_jobs == 1 or len(items) < 2:
        return [func(item) for item in items]

    return Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(func)(item) for item in items
    )


# --- Result Conversion ---

def results_to_frame(results, decimals_as_strings=False) -> pd.DataFrame:
    """
    Convert a list of result dataclasses into a DataFrame for consumers.

    Args:
        results: List of dataclass instances (one row each) or a single instance
        decimals_as_strings: If True, Decimal values are rendered as strings so
                             no consumer reads them back as binary floats

    Returns:
        DataFrame with one column per dataclass field (empty if no results)
    """
    if dataclasses.is_dataclass(results) and not isinstance(results, type):
        results = [results]
    rows = [dataclasses.asdict(r) for r in results]
    if not rows:
        return pd.DataFrame()

    df = pd.DataFrame(rows)
    for col in df.columns:
        df[col] = df[col].map(lambda v: _render_value(v, decimals_as_strings))
    return df


def _render_value(value, decimals_as_strings):
    if isinstance(value, Decimal):
        return str(value) if decimals_as_strings else value
    if isinstance(value, (list, tuple, dict)):
        return str(value)
    if value is not None and not isinstance(value, (str, int, float, bool, pd.Timestamp)):
        # Tagged values such as the unbounded depletion horizon
        return str(value)
    return value


# --- Data Export Function ---

def get_results_as_excel(dfs_to_export_dict, logs=None):
    """
    Processes a dictionary of dataframes
    and returns an Excel file as a bytes object for download.
    The dictionary format is { "sheet_name": (dataframe, include_index_bool) }

    Decimal columns are written as text so exact values survive the export.
    """
    if logs is None:
        logs = []
    output = io.BytesIO()

    with pd.ExcelWriter(output, engine='xlsxwriter') as writer:
        written = 0
        for sheet_name, (df, include_index) in dfs_to_export_dict.items():

            # Ensure dataframe is not just a placeholder
            if not isinstance(df, pd.DataFrame):
                logs.append(f"WARNING: Skipping {sheet_name}: Not a DataFrame.")
                continue
            if df.empty:
                logs.append(f"WARNING: Skipping {sheet_name}: DataFrame is empty.")
                continue

            df_to_export = df.copy()
            for col in df_to_export.columns:
                if pd.api.types.is_datetime64_any_dtype(df_to_export[col]):
                    if getattr(df_to_export[col].dt, 'tz', None) is not None:
                        df_to_export[col] = df_to_export[col].dt.tz_localize(None)
                    df_to_export[col] = df_to_export[col].dt.strftime('%Y-%m-%d')
                elif df_to_export[col].map(lambda v: isinstance(v, Decimal)).any():
                    df_to_export[col] = df_to_export[col].map(
                        lambda v: str(v) if isinstance(v, Decimal) else v
                    )

            # Excel caps sheet names at 31 characters
            df_to_export.to_excel(writer, sheet_name=sheet_name[:31], index=include_index)
            written += 1

            # Auto-adjust column widths
            worksheet = writer.sheets[sheet_name[:31]]
            offset = 1 if include_index else 0
            for idx, col in enumerate(df_to_export.columns):
                series = df_to_export[col]
                max_len = max(
                    series.astype(str).map(len).max(),  # Data max len
                    len(str(series.name))  # Header len
                ) + 2  # Add a little extra space
                worksheet.set_column(idx + offset, idx + offset, max_len)

        if written == 0:
            # xlsxwriter needs at least one visible sheet
            pd.DataFrame({'message': ['No data to export']}).to_excel(writer, sheet_name='Empty', index=False)
            logs.append("WARNING: No non-empty results to export.")

    return output.getvalue()
