#!/usr/bin/env python3
"""
Interactive demo against a running translator worker.

This script:
1. Connects to the worker over RabbitMQ and imports the engine
2. Reads the model registry and lists the available languages
3. Loads the model for the chosen pair (or the first usable pair)
4. Translates each line typed on stdin, one paragraph per line

Usage:
    python scripts/translate_demo.py registry.json --engine translator.mock_engine
    python scripts/translate_demo.py registry.json --from de --to en --html
"""

import argparse
import asyncio
import locale
import sys
from pathlib import Path
from typing import List, Optional, Tuple

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from translator.client import TranslationWorkerClient  # noqa: E402
from translator.registry import ModelRegistry  # noqa: E402
from translator.schemas import TranslationOptions  # noqa: E402


def guess_source_language(languages: List[str]) -> Optional[str]:
    """Guess the input language from the user's locale, if it is available."""
    code = (locale.getlocale()[0] or "").split("_")[0].lower()
    return code if code in languages else None


def choose_pair(
    languages: List[str], source: Optional[str], target: Optional[str]
) -> Tuple[str, str]:
    source = source or guess_source_language(languages) or languages[0]
    # First target language that isn't the source language
    target = target or next(code for code in languages if code != source)
    return source, target


async def run(args: argparse.Namespace) -> int:
    registry = ModelRegistry.from_file(args.registry)
    languages = registry.languages()
    if len(languages) < 2:
        print("❌ Registry needs at least two languages")
        return 1
    print(f"🌐 Available languages: {', '.join(languages)}")

    source, target = choose_pair(languages, args.source, args.target)

    async with TranslationWorkerClient() as client:
        if args.engine:
            print(f"🔧 Importing engine {args.engine}...")
            await client.import_engine(args.engine, args.engine_binary)

        print(f"📦 Installing model '{source}{target}'...")
        status = await client.load_model(source, target, registry)
        print(f"   {status}")

        print("✍️  Type text to translate (Ctrl+D to quit)")
        for line in sys.stdin:
            paragraphs = [p for p in line.rstrip("\n").split("\n") if p.strip()]
            if not paragraphs:
                continue
            options = [
                TranslationOptions(is_html=args.html, is_quality_scores=args.quality)
                for _ in paragraphs
            ]
            results = await client.translate(source, target, paragraphs, options)
            if results is None:
                print("❌ Translation failed (see worker log)")
                continue
            for result in results:
                print(result.translated_text)
                for index, sentence in enumerate(result.translated_sentences):
                    print(f"   [{index}] {sentence}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.split("\n")[1])
    parser.add_argument("registry", help="Path to the model registry JSON file")
    parser.add_argument("--from", dest="source", help="Source language code")
    parser.add_argument("--to", dest="target", help="Target language code")
    parser.add_argument("--engine", help="Engine module to import on the worker")
    parser.add_argument("--engine-binary", help="Engine binary location")
    parser.add_argument("--html", action="store_true", help="Treat input as HTML")
    parser.add_argument(
        "--quality", action="store_true", help="Request quality scores"
    )
    sys.exit(asyncio.run(run(parser.parse_args())))


if __name__ == "__main__":
    main()
