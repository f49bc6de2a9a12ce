import argparse
import asyncio
import os
import sys

# Ensure src is in pythonpath
sys.path.append(os.path.join(os.path.dirname(__file__), "..", "src"))

from dotenv import load_dotenv
load_dotenv()

from pdf_qa_server.answer.pipeline import AnswerPipeline
from pdf_qa_server.config import settings
from pdf_qa_server.core.errors import PdfQaError
from pdf_qa_server.core.logging_config import configure_logging
from pdf_qa_server.db.session import async_engine, init_db
from pdf_qa_server.embeddings.embedder import Embedder
from pdf_qa_server.ingestion.pipeline import IngestionPipeline
from pdf_qa_server.ingestion.upload import upload_document
from pdf_qa_server.llm.client import GenerationClient


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Ingest a PDF into the document store and optionally ask a question.",
    )
    parser.add_argument("pdf", nargs="?", help="Path to the PDF to ingest.")
    parser.add_argument("--ask", metavar="QUESTION", help="Question to answer after ingesting.")
    parser.add_argument(
        "--chunk-size",
        type=int,
        default=settings.chunk_size,
        help="Maximum characters per chunk (default: %(default)s).",
    )
    args = parser.parse_args(argv)
    if not args.pdf and not args.ask:
        parser.error("give a PDF to ingest, a --ask question, or both")
    return args


async def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(settings.log_level)

    print("Initializing database...")
    await init_db()

    embedder = Embedder()

    try:
        if args.pdf:
            with open(args.pdf, "rb") as fh:
                data = fh.read()

            pipeline = IngestionPipeline(embedder=embedder)
            report = await upload_document(
                os.path.basename(args.pdf),
                data,
                pipeline,
                chunk_size=args.chunk_size,
            )
            print(
                f"Stored {report.processed_chunks}/{report.original_chunks} chunks "
                f"from {report.file_name} ({report.failed_chunks} failed)."
            )

        if args.ask:
            answerer = AnswerPipeline(embedder=embedder, generator=GenerationClient())
            answer = await answerer.ask(args.ask)
            print(f"\nAnswer:\n{answer.answer}\n")
            for match in answer.sources:
                print(f"- {match.attribution()} similarity={match.similarity:.3f}")
    except PdfQaError as exc:
        print(f"Error ({exc.kind.value}): {exc.message}", file=sys.stderr)
        return 1
    finally:
        await async_engine.dispose()

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
