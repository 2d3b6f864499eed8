#!/usr/bin/env python3
"""
retar: create, list, extract and mutate tar archives in place.

Mutations (append, update, delete, reorganize) read the whole archive into
memory, apply the requested changes, write members back in canonical path
order and only then overwrite the archive file, keeping its permissions.

The archive may be wrapped by one compression codec, chosen with -A or
inferred from the file extension:
  gzip (.gz .tgz), zlib (.zz .zlib), bzip2 (.bz2), xz (.xz), lzma (.lzma),
  lz4 (.lz4), zstd (.zst .zstd), s2 (.s2), brotli (.br)

Examples:
  python retar.py -c -f site.tar.zst public/
  python retar.py -a -f site.tar.zst public/index.html
  python retar.py -u -f site.tar.zst public/css
  python retar.py -d -f site.tar.zst 'public/*.map' public/tmp/
  python retar.py -r -f site.tar.zst
  python retar.py -l -f site.tar.zst
  python retar.py -x -C out/ -f site.tar.zst 'public/*.html'
"""

import argparse
import io
import sys
from typing import List, Optional

from tarcli.extract import extract_to_disk, extract_to_stream, select
from tarcli.inputs import expand_inputs, infer_algorithm
from tarcli.listing import archive_stats, list_entries
from tarcore import operations
from tarcore.codecs import DEFAULT_LEVEL, Algorithm, CodecConfig
from tarcore.collisions import CollisionPolicy
from tarcore.commit import read_archive
from tarcore.container import decode, encode
from tarcore.errors import RetarError
from tarcore.ordering import reorder
from tarcore.planner import Update, plan


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="retar",
        usage="%(prog)s [OPTION] [-f FILE] [FILES ...]",
        description="Create, list, extract and mutate tar archives in place.",
    )
    actions = parser.add_mutually_exclusive_group(required=True)
    actions.add_argument("-a", dest="append", action="store_true",
                         help="append files, renaming on name collisions (see --on-collision)")
    actions.add_argument("-c", dest="create", action="store_true",
                         help="create; overwrites the archive file")
    actions.add_argument("-u", dest="update", action="store_true",
                         help="update: replace members of the same name, insert new ones")
    actions.add_argument("-d", dest="delete", action="store_true",
                         help="delete members matching the given names, globs or directories")
    actions.add_argument("-r", dest="reorganize", action="store_true",
                         help="rewrite the archive in canonical path order")
    actions.add_argument("-x", dest="extract", action="store_true",
                         help="extract all members, or those matching FILES")
    actions.add_argument("-o", dest="stdout", action="store_true",
                         help="extract member content to stdout")
    actions.add_argument("-l", dest="list", action="store_true", help="list contents of the archive")
    actions.add_argument("-s", dest="stats", action="store_true", help="print archive statistics")

    parser.add_argument("-f", dest="file", required=True, help="tar file ('-' for stdin/stdout)")
    parser.add_argument("-z", dest="compress", action="store_true",
                        help="compress/decompress the archive (brotli unless -A or the extension says otherwise)")
    parser.add_argument("-A", dest="algorithm", default="",
                        help="algorithm: " + ", ".join(a.value for a in Algorithm if a is not Algorithm.NONE))
    parser.add_argument("-L", dest="level", type=int, default=DEFAULT_LEVEL,
                        help="compression level (1 = fastest, 9 = best)")
    parser.add_argument("-j", dest="workers", type=int, default=0,
                        help="codec worker threads where supported (default: CPU count)")
    parser.add_argument("-C", dest="directory", default=".", help="extract into DIRECTORY")
    parser.add_argument("--on-collision", choices=[p.value for p in CollisionPolicy],
                        default=CollisionPolicy.ASK.value,
                        help="what -a does when a name already exists (default: ask)")
    parser.add_argument("files", nargs="*", metavar="FILES")
    return parser


def codec_config(args: argparse.Namespace) -> CodecConfig:
    """Resolve the codec from -A, -z and the archive extension."""
    algorithm = Algorithm.parse(args.algorithm)
    if algorithm is Algorithm.NONE:
        algorithm = infer_algorithm(args.file)
    if algorithm is Algorithm.NONE and args.compress:
        algorithm = Algorithm.BROTLI
    return CodecConfig(algorithm=algorithm, level=args.level, concurrency=args.workers)


def ask_to_append(name: str) -> bool:
    print(f"File with the same name already exists in the tarball: {name}")
    try:
        response = input("Do you want to append it? (y/n): ")
    except EOFError:
        return False
    return response.strip().lower() == "y"


def progress(line: str) -> None:
    print(line, file=sys.stderr)


def load(args: argparse.Namespace, config: CodecConfig):
    if args.file == "-":
        return decode(sys.stdin.buffer, config.algorithm)
    data, _ = read_archive(args.file)
    return decode(io.BytesIO(data), config.algorithm)


def run(args: argparse.Namespace) -> None:
    config = codec_config(args)
    in_place = args.append or args.update or args.delete or args.reorganize

    if in_place and args.file == "-":
        raise RetarError("cannot modify an archive read from stdin; use -c to write to stdout")

    if args.stats:
        for line in archive_stats(load(args, config)).lines(args.file):
            print(line)

    elif args.list:
        for line in list_entries(load(args, config)):
            print(line)

    elif args.extract or args.stdout:
        entries = select(load(args, config), args.files)
        if args.stdout:
            extract_to_stream(entries, sys.stdout.buffer)
        else:
            extract_to_disk(entries, args.directory, report=print)

    elif args.delete:
        operations.delete(args.file, args.files, config, report=print)

    elif args.reorganize:
        operations.reorganize(args.file, config)

    elif args.update:
        operations.update(args.file, expand_inputs(args.files, progress), config, report=print)

    elif args.append:
        operations.append(args.file, expand_inputs(args.files, progress), config,
                          policy=CollisionPolicy(args.on_collision), decide=ask_to_append,
                          report=print)

    elif args.create:
        paths = expand_inputs(args.files, progress)
        if args.file == "-":
            archive = plan({}, [Update(p) for p in paths], report=progress)
            encode(reorder(archive), sys.stdout.buffer, config)
            sys.stdout.buffer.flush()
        else:
            operations.create(args.file, paths, config, report=progress)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        run(args)
    except RetarError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
