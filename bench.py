"""Benchmark encode, count_tokens and decode throughput on synthetic text.

Outputs a row with the columns:
  Corpus Size | Vocab Size | Encoding Throughput | Counting Throughput |
  Decoding Throughput | Compression Ratio | Cache Hit Rate
"""

import argparse
import logging
import time
from pathlib import Path

import ranktok as rt
from ranktok.registry import get_encoding_spec


def format_bytes(num_bytes: int) -> str:
    """Format bytes into human-readable units."""
    size = float(num_bytes)
    for unit in ["B", "KB", "MB", "GB"]:
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0
    return f"{size:.2f} TB"


def make_text(target_mb: float) -> str:
    """Build deterministic synthetic text close to target size."""
    target_bytes = int(target_mb * 1024 * 1024)
    seed = (
        "The wormhole shimmered above Titan while engines hummed in sync. "
        "Captain Rao logged coordinates and the archive AI cross-checked stellar drift. "
        "Quantum relays pulsed, translating static into maps for the next jump. "
        "Ünïcödé lögs: 日本語のテキスト, emoji 🚀🛰️, and numbers 3.14159 / 2,718.\n"
    )
    repeat = max(1, target_bytes // len(seed.encode("utf-8")) + 1)
    text = seed * repeat
    while len(text.encode("utf-8")) > target_bytes:
        text = text[:-1]
    return text


def split_docs(text: str, docs: int) -> list[str]:
    """Split text into `docs` roughly equal parts."""
    docs = max(1, docs)
    step = max(1, len(text) // docs)
    out = [text[i : i + step] for i in range(0, len(text), step)]
    return [chunk for chunk in out if chunk]


def measure(name: str, fn, total_bytes: int) -> tuple[float, object]:
    """Run one benchmark case, print throughput and return (elapsed, result)."""
    start = time.perf_counter()
    result = fn()
    elapsed = time.perf_counter() - start
    mbps = total_bytes / elapsed / (1024 * 1024)
    print(f"{name:<30} {elapsed:>10.3f}s  {mbps:>7.2f} MB/s")
    return elapsed, result


def load_vocab(args: argparse.Namespace) -> rt.Vocabulary:
    """Load the vocabulary from an explicit rank file or a named encoding."""
    if args.rank_file:
        spec = get_encoding_spec(args.encoding)
        return rt.load_vocabulary(
            Path(args.rank_file), spec.special_tokens, spec.pattern, name=spec.name
        )
    return rt.get_encoding(args.encoding, args.data_dir).vocab


def main() -> None:
    """Run the benchmark and print a table row."""
    parser = argparse.ArgumentParser(
        description="Benchmark ranktok encode, count_tokens and decode."
    )
    parser.add_argument(
        "--encoding",
        type=str,
        default="cl100k_base",
        help="Registered encoding name (default: cl100k_base).",
    )
    parser.add_argument(
        "--rank-file",
        type=str,
        default=None,
        help="Rank file to load instead of <data-dir>/<encoding>.tiktoken.",
    )
    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Directory holding rank files (default: $RANKTOK_DATA_DIR).",
    )
    parser.add_argument(
        "--size-mb", type=float, default=8, help="Synthetic corpus size in MB."
    )
    parser.add_argument(
        "--docs", type=int, default=256, help="Number of documents to split into."
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Threads for encode_batch (default: CPU count).",
    )
    parser.add_argument(
        "--no-cache", action="store_true", help="Disable the piece cache."
    )
    parser.add_argument("--verbose", action="store_true", help="Enable info logging.")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING)

    vocab = load_vocab(args)
    encoder = rt.Encoder(vocab, cache=not args.no_cache)

    text = make_text(args.size_mb)
    docs = split_docs(text, args.docs)
    total_bytes = sum(len(d.encode("utf-8")) for d in docs)
    print(f"Corpus: {format_bytes(total_bytes)} in {len(docs)} docs")
    print()

    encode_secs, encoded = measure(
        "encode_batch",
        lambda: encoder.encode_batch(docs, num_workers=args.workers),
        total_bytes,
    )
    count_secs, counted = measure(
        "count_tokens (warm cache)",
        lambda: sum(encoder.count_tokens(d) for d in docs),
        total_bytes,
    )
    decode_secs, _ = measure(
        "decode_batch", lambda: encoder.decode_batch(encoded), total_bytes
    )

    total_tokens = sum(len(seq) for seq in encoded)
    if counted != total_tokens:
        raise RuntimeError(f"count mismatch: {counted} != {total_tokens}")

    compression_ratio = total_bytes / total_tokens
    stats = encoder.cache.stats if encoder.cache is not None else None
    if stats is not None and stats.hits + stats.misses:
        hit_rate = f"{stats.hits / (stats.hits + stats.misses) * 100:.1f}%"
    else:
        hit_rate = "n/a"

    print()
    header = (
        f"| {'Corpus Size':12} | {'Vocab Size':10} | {'Encoding Throughput':19} "
        f"| {'Counting Throughput':19} | {'Decoding Throughput':19} "
        f"| {'Compression Ratio':17} | {'Cache Hit Rate':14} |"
    )
    sep = (
        f"| {'-' * 12} | {'-' * 10} | {'-' * 19} "
        f"| {'-' * 19} | {'-' * 19} "
        f"| {'-' * 17} | {'-' * 14} |"
    )
    row = (
        f"| {format_bytes(total_bytes):12} | {vocab.n_vocab:10,} "
        f"| {f'{total_bytes / encode_secs / 2**20:.2f} MB/sec':19} "
        f"| {f'{total_bytes / count_secs / 2**20:.2f} MB/sec':19} "
        f"| {f'{total_tokens / decode_secs / 1e6:.1f}M tokens/sec':19} "
        f"| {f'{compression_ratio:.2f}x':17} | {hit_rate:14} |"
    )
    print(header)
    print(sep)
    print(row)
    print()


if __name__ == "__main__":
    main()
