from __future__ import annotations

import argparse
import json
import logging
import pathlib
import sys
from typing import List, Optional

from ea_restart.battery import COLS, ROWS
from ea_restart.certificate import HMAC_ENV, build_certificate, verify_certificate, write_certificate
from ea_restart.config import check_run_parameters, load_config
from ea_restart.errors import ConfigurationError, SampleInputError, SanityCheckFailed
from ea_restart.restart import RestartReport, run_restart_test
from ea_restart.samples import load_samples

EXIT_OK = 0
EXIT_FAILURE = 1

DESCRIPTION = """\
Restart testing as described in SP 800-90B Section 3.1.4. The data consists
of 1000 restarts, each with 1000 samples, converted to rows and columns as in
Section 3.1.4.1; the sanity check (3.1.4.3) and the validation test (3.1.4.2)
are performed on this data. If both pass, min(H_r, H_c, H_I) is reported: the
validated entropy assessment, or the basis of 'h_in' when conditioning is used.
"""

EPILOG = """\
Samples are packed into 8-bit values, where the rightmost 'bits_per_word' bits
constitute the sample: with 'bits_per_word' 3 the samples 0x6F, 0xA4, 0x39,
0x58 are truncated to 0x07, 0x04, 0x01, 0x00. If fewer than 2^bits_per_word
symbols are observed, the alphabet is mapped down to 0..alph_size-1 in
ascending numeric order of the symbols.
"""


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ea-restart",
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("file_path", type=pathlib.Path, help="binary file with at least rows*cols samples (words)")
    p.add_argument("bits_per_word", type=int, help="bits per sample, between 1 and 8 inclusive")
    p.add_argument("h_initial", metavar="H_I", type=float, help="initial entropy estimate")
    kind = p.add_mutually_exclusive_group(required=True)
    kind.add_argument("-i", dest="iid", action="store_true", help="data is IID")
    kind.add_argument("-n", dest="iid", action="store_false", help="data is non-IID")
    p.add_argument("-v", dest="verbose", action="store_true", help="more output")
    p.add_argument("--config", type=pathlib.Path, default=None, help="TOML file with a [restart] table")
    p.add_argument("--out", type=pathlib.Path, default=None, help="write a JSON restart certificate here")
    p.add_argument("--key-id", default=None, help="optional key identifier to record in the certificate provenance")
    p.add_argument("--hmac-env", default=HMAC_ENV, help="env var name that holds the HMAC key")
    return p


def print_estimates(report: RestartReport, verbose: bool) -> None:
    rows = report.accumulators[ROWS].outcomes
    cols = report.accumulators[COLS].outcomes
    group = None
    for row, col in zip(rows, cols):
        if row.group != group:
            group = row.group
            print(f"\nRunning {group}...")
        if not verbose:
            continue
        for orientation, outcome in ((ROWS, row), (COLS, col)):
            if outcome.applicable:
                print(f"\t{outcome.label} ({orientation}) = {outcome.value:f} / {report.word_size} bit(s)")


def print_validation(report: RestartReport) -> None:
    v = report.validation
    print(f"\nH_r: {v.h_rows:f}")
    print(f"H_c: {v.h_cols:f}")
    print(f"H_I: {v.h_initial:f}\n")
    if not v.accepted:
        print("*** min(H_r, H_c) < H_I/2, Validation Testing Failed ***")
    else:
        print("Validation Test Passed...\n")
        print(f"min(H_r, H_c, H_I): {v.certified_bound:f}\n")


def run(args: argparse.Namespace) -> int:
    if args.verbose and not logging.getLogger().handlers:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    try:
        check_run_parameters(args.bits_per_word, args.h_initial)
        config = load_config(args.config)
    except ConfigurationError as exc:
        print(exc)
        return EXIT_FAILURE

    if args.verbose:
        print(f"Opening file: '{args.file_path}'")
    try:
        samples = load_samples(args.file_path, args.bits_per_word)
    except SampleInputError as exc:
        print(f"Error reading file. {exc}")
        return EXIT_FAILURE

    if samples.alphabet_size == 1:
        print("Symbol alphabet consists of 1 symbol. No entropy awarded...")
        return EXIT_FAILURE
    if args.verbose:
        print(f"Number of Symbols: {min(len(samples), config.sample_count)}")
    if len(samples) < config.sample_count:
        print(f"\n*** Error: data contains less than {config.sample_count} samples ***\n")
        return EXIT_FAILURE
    if args.verbose:
        if samples.remapped:
            print(f"\nSymbols have been mapped down to an alphabet size of {samples.alphabet_size} unique symbols\n")
        else:
            print(f"\nSymbol alphabet consists of {samples.alphabet_size} unique symbols\n")

    print(f"H_I: {args.h_initial:f}")

    def announce(partial: RestartReport) -> None:
        if args.verbose:
            print("\nRestart Sanity Check Passed...")
        print("\nRunning IID tests...\n" if partial.iid else "\nRunning non-IID tests...\n", flush=True)

    try:
        report = run_restart_test(samples, args.h_initial, args.iid, config, on_sanity_passed=announce)
    except SanityCheckFailed as exc:
        print(f"\n*** Restart Sanity Check Failed; ALPHA: {exc.alpha:f}, TAIL PROB: {exc.tail_probability:f} ***")
        return EXIT_FAILURE
    print_estimates(report, args.verbose)
    print_validation(report)

    if args.out is not None:
        document = build_certificate(
            report.to_payload(), input_path=args.file_path, key_id=args.key_id, hmac_env=args.hmac_env
        )
        sha = write_certificate(document, args.out)
        print(f"wrote {args.out}")
        print(f"  sha256: {sha}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return run(args)


def verify_main(argv: Optional[List[str]] = None) -> int:
    """Check a restart certificate against its stored provenance claims."""
    p = argparse.ArgumentParser(prog="ea-restart-verify", description=verify_main.__doc__)
    p.add_argument("path", type=pathlib.Path, help="restart certificate written with --out")
    p.add_argument("--hmac-env", default=HMAC_ENV, help="env var name that holds the HMAC key")
    args = p.parse_args(argv)

    if not args.path.exists():
        print(f"ERROR: not found: {args.path}", file=sys.stderr)
        return EXIT_FAILURE
    result = verify_certificate(args.path, hmac_env=args.hmac_env)
    print(json.dumps(result, indent=2))
    if result["sha256_matches"] and result["hmac_matches"] is not False:
        return EXIT_OK
    return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
