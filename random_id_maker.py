# /// script
# requires-python = "==3.12.*"
# dependencies = [
#   "polars"
# ]
# ///

"""
Generates a random ID without confusing characters (e.g., 'O' and '0').

Usage:
    uv run ./random_id_maker.py  # default length is 16
    uv run ./random_id_maker.py --length 20
    length=20 uv run ./random_id_maker.py

Reports:
    uv run ./random_id_maker.py --report bias
    uv run ./random_id_maker.py --report uniqueness
    uv run ./random_id_maker.py --report sample --sample-size 100000

Alphabet:
The 56 symbols are the digits 2-9, the 24 uppercase letters without 'I' and 'O',
    and the same 24 letters lowercased (so no 'i' or 'o' either). Note that 'l' _is_ included.

Each random byte `v` is mapped to `ALPHABET[floor(v * 56 / 256)]`.
256 isn't a multiple of 56 (256 = 56*4 + 32), so 32 symbols own 5 byte-values
    and 24 own 4. That small bias is known and accepted; `--report bias` shows it per symbol.
"""

import argparse
import logging
import math
import os
import secrets
import sys
from collections.abc import Callable, Iterable, Mapping

import polars as pl

log_level_name: str = os.getenv('LOG_LEVEL', 'INFO').upper()
log_level = getattr(
    logging, log_level_name, logging.INFO
)  # maps the string name to the corresponding logging level constant; defaults to INFO
logging.basicConfig(
    level=log_level,
    format='[%(asctime)s] %(levelname)s [%(module)s-%(funcName)s()::%(lineno)d] %(message)s',
    datefmt='%d/%b/%Y %H:%M:%S',
)
log = logging.getLogger(__name__)


DIGITS_8 = '23456789'  # no '0' or '1'
LETTERS_24 = 'ABCDEFGHJKLMNPQRSTUVWXYZ'  # no 'I' or 'O'
ALPHABET: str = DIGITS_8 + LETTERS_24 + LETTERS_24.lower()
ALPHABET_SIZE = 56
AMBIGUOUS_CHARACTERS = frozenset('01IOio')

DEFAULT_LENGTH = 16
LENGTH_ENV_VAR = 'length'


## -- errors --------------------------------------------------------


class RandomIdError(Exception):
    """Base for errors that abort ID generation."""


class AlphabetInvariantError(RandomIdError):
    """Raised when the alphabet isn't 56 unique, unambiguous characters."""


class EntropySourceError(RandomIdError):
    """Raised when the random source can't supply the requested bytes."""


## -- alphabet ------------------------------------------------------


def validate_alphabet(alphabet: str) -> None:
    """
    Checks the alphabet invariants; raises AlphabetInvariantError on any violation.

    Called at import-time against `ALPHABET`, and by tests.
    """
    if len(alphabet) != ALPHABET_SIZE:
        raise AlphabetInvariantError(f'alphabet has {len(alphabet)} characters; expected {ALPHABET_SIZE}')
    if len(set(alphabet)) != len(alphabet):
        dupes: list[str] = sorted({c for c in alphabet if alphabet.count(c) > 1})
        raise AlphabetInvariantError(f'alphabet repeats characters: {"".join(dupes)}')
    ambiguous: set[str] = AMBIGUOUS_CHARACTERS.intersection(alphabet)
    if ambiguous:
        raise AlphabetInvariantError(f'alphabet contains ambiguous characters: {"".join(sorted(ambiguous))}')


validate_alphabet(ALPHABET)


## -- byte-to-symbol mapping ----------------------------------------


def symbol_index(value: int) -> int:
    """
    Maps a byte-value (0-255) to an alphabet index (0-55).

    Called by `map_bytes()` and `bias_table()`.
    """
    if not 0 <= value <= 255:
        raise ValueError(f'byte value out of range: {value}')
    return (value * ALPHABET_SIZE) // 256


def map_bytes(raw: bytes) -> str:
    """
    Maps each byte to one alphabet symbol, preserving order.

    Called by `generate()`.
    """
    return ''.join(ALPHABET[symbol_index(v)] for v in raw)


def generate(length: int = DEFAULT_LENGTH, entropy_source: Callable[[int], bytes] = secrets.token_bytes) -> str:
    """
    Returns a random ID of `length` symbols.

    `entropy_source` takes a byte-count and returns that many bytes; it defaults to
    the OS CSPRNG. A failing or short source raises EntropySourceError -- there's
    no fallback to a non-cryptographic generator, and no partial ID.

    Called by `main()` and `sample_frequencies()`.
    """
    if isinstance(length, bool) or not isinstance(length, int):
        raise ValueError(f'length must be an integer; got ``{length!r}``')
    if length < 0:
        raise ValueError(f'length must not be negative; got ``{length}``')
    if length == 0:
        return ''
    try:
        raw: bytes = entropy_source(length)
    except (OSError, NotImplementedError) as exc:
        raise EntropySourceError(f'random source failed supplying {length} bytes: {exc}') from exc
    if len(raw) != length:
        raise EntropySourceError(f'random source supplied {len(raw)} bytes; expected {length}')
    log.debug(f'mapping {length} random bytes')
    return map_bytes(raw)


## -- configuration -------------------------------------------------


def resolve_length(environ: Mapping[str, str] | None = None) -> int:
    """
    Returns the ID length from the `length` env-var, falling back to the default.

    absent -> 16; positive integer -> used; non-numeric or non-positive -> 16 (with a warning).

    Called by `main()`.
    """
    env: Mapping[str, str] = os.environ if environ is None else environ
    raw: str = env.get(LENGTH_ENV_VAR, '').strip()
    if not raw:
        return DEFAULT_LENGTH
    try:
        value = int(raw)
    except ValueError:
        log.warning(f'ignoring non-numeric {LENGTH_ENV_VAR} ``{raw}``; using default {DEFAULT_LENGTH}')
        return DEFAULT_LENGTH
    if value < 1:
        log.warning(f'ignoring non-positive {LENGTH_ENV_VAR} ``{raw}``; using default {DEFAULT_LENGTH}')
        return DEFAULT_LENGTH
    return value


## -- reports -------------------------------------------------------


def bias_table() -> pl.DataFrame:
    """
    Shows, per symbol, how many of the 256 byte-values map to it, and the resulting skew from 1/56.

    Called by `main()`.
    """
    raw_values: list[int] = [0] * ALPHABET_SIZE
    for v in range(256):
        raw_values[symbol_index(v)] += 1
    df: pl.DataFrame = pl.DataFrame(
        {
            'index': list(range(ALPHABET_SIZE)),
            'symbol': list(ALPHABET),
            'raw_values': raw_values,
        }
    ).with_columns((pl.col('raw_values') / 256).alias('probability'))
    df = df.with_columns((pl.col('probability') - 1 / ALPHABET_SIZE).alias('deviation'))
    return df


def uniqueness_table(lengths: Iterable[int] = range(5, 21), epsilon: float = 0.00001) -> pl.DataFrame:
    """
    Answers how many IDs of a given length one can generate before the chance
    of a collision (among all IDs in the batch) rises above `epsilon`.

    Uses the birthday bound: P(no collision) ≈ exp(-N^2/(2M)) ⇒ N ≈ sqrt(-2 M ln(1 - epsilon)),
    with M = 56^length.

    Called by `main()`.
    """
    rows: list[dict[str, int | str]] = []
    for length in lengths:
        space: int = ALPHABET_SIZE**length
        max_ids = int(math.sqrt(-2 * space * math.log1p(-epsilon)))
        rows.append({'length': length, 'max_ids': max_ids, 'max_ids_display': f'{max_ids:_}'})
    return pl.DataFrame(rows, schema={'length': pl.Int64, 'max_ids': pl.Int64, 'max_ids_display': pl.String})


def symbol_frequencies(sample: str) -> pl.DataFrame:
    """
    Counts every alphabet symbol in `sample` (absent symbols count zero).

    Called by `main()` and tests.
    """
    symbols: pl.DataFrame = pl.DataFrame({'index': list(range(ALPHABET_SIZE)), 'symbol': list(ALPHABET)})
    counts: pl.DataFrame = (
        pl.DataFrame({'symbol': list(sample)}, schema={'symbol': pl.String})
        .group_by('symbol')
        .agg(pl.len().alias('count'))
    )
    total: int = max(len(sample), 1)
    df: pl.DataFrame = (
        symbols.join(counts, on='symbol', how='left')
        .with_columns(pl.col('count').fill_null(0).cast(pl.Int64))
        .with_columns((pl.col('count') / total).alias('frequency'))
        .sort('index')
    )
    return df


def print_table(df: pl.DataFrame) -> None:
    """
    Prints all rows of a report table.

    Called by `main()`.
    """
    with pl.Config(tbl_rows=-1):
        print(df)


## -- cli -----------------------------------------------------------


def non_negative_int(value: str) -> int:
    """Argparse type for `--length` and `--sample-size`."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f'not an integer: {value!r}') from None
    if number < 0:
        raise argparse.ArgumentTypeError(f'must not be negative: {value!r}')
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parses command-line arguments.

    Called by `main()`.
    """
    parser = argparse.ArgumentParser(description='Generate a random ID without confusing characters.')
    parser.add_argument(
        '-l',
        '--length',
        type=non_negative_int,
        default=None,
        help=f'length of the generated ID (default: the `{LENGTH_ENV_VAR}` env-var, else {DEFAULT_LENGTH})',
    )
    parser.add_argument(
        '--report',
        choices=['bias', 'uniqueness', 'sample'],
        default=None,
        help='print a report table instead of an ID',
    )
    parser.add_argument(
        '--sample-size',
        dest='sample_size',
        type=non_negative_int,
        default=10_000,
        help='number of random symbols drawn for `--report sample` (default: 10_000)',
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Main controller function.

    Called by dundermain and the `random-id-maker` console-script.
    """
    ## parse args ---------------------------------------------------
    args: argparse.Namespace = parse_args(argv)
    ## reports ------------------------------------------------------
    try:
        if args.report == 'bias':
            print_table(bias_table())
            return 0
        if args.report == 'uniqueness':
            print_table(uniqueness_table())
            return 0
        if args.report == 'sample':
            print_table(symbol_frequencies(generate(args.sample_size)))
            return 0
        ## generate -------------------------------------------------
        length: int = args.length if args.length is not None else resolve_length()
        log.debug(f'length: ``{length}``')
        id_secure: str = generate(length)
    except RandomIdError as exc:
        log.error(f'unable to generate ID: {exc}')
        return 1
    print(id_secure)
    return 0


if __name__ == '__main__':
    sys.exit(main())
