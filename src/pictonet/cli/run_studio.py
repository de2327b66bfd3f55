"""Command-line front end for the pictogram studio.

This module contains the actual command runner, separated from the thin
script in ``scripts/``. Every subcommand opens the persisted working set,
resolves configuration (persisted < user file < command line), does its
work through :class:`StudioOrchestrator` and exits.
"""

import argparse
import asyncio
import importlib.util
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from pictonet.collaborators.gemini import GeminiGenerator, GeminiStructurer
from pictonet.collaborators.vtracer_adapter import VtracerVectorizer
from pictonet.contracts.failure import CollaboratorError, ImportFormatError
from pictonet.core.activity_log import ActivityLog, setup_logging
from pictonet.core.reporting import (
    evaluation_frame,
    evaluation_summary,
    log_evaluation_statistics,
    rows_frame,
)
from pictonet.core.storage import SQLiteKeyValueStorage
from pictonet.pipeline.orchestrator import StudioOrchestrator
from pictonet.pipeline.row_store import RowStore, SortKey
from pictonet.schemas import CLIConfig, RuntimeConfig, StudioSettings, UserConfig, resolve_config
from pictonet.schemas.evaluation import AXES
from pictonet.schemas.row import GENERATION_STAGES, Stage
from pictonet.setup_directories import (
    get_db_path,
    get_export_path,
    get_log_path,
    get_svg_path,
    setup_workspace_directories,
)

__all__ = ['main', 'build_parser', 'load_user_config_dict', 'resolve_runtime_config']

logger = logging.getLogger(__name__)

# Subcommands that call a generation model
ONLINE_COMMANDS = {"run", "stage", "spatial", "vectorize"}


def load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from Python file.

    Returns the raw dict before Pydantic validation.

    Parameters
    ----------
    config_path : str
        Path to user config Python file containing CONFIG dict.

    Returns
    -------
    dict
        Raw user configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If no CONFIG dict found in file.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("config_module", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pictonet",
        description="Pictogram studio: staged generation with cascade invalidation",
    )
    parser.add_argument("--config", help="User config file (Python file with a CONFIG dict)")
    parser.add_argument("--db", dest="db_path", help="SQLite database path")
    parser.add_argument("--base-dir", help="Workspace directory for exports, SVG and logs")
    parser.add_argument("--lang", help="Override studio language")
    parser.add_argument("--aspect-ratio", choices=["1:1", "3:4", "4:3", "9:16", "16:9"],
                        help="Override image aspect ratio")
    parser.add_argument("--image-model", choices=["flash", "pro"], help="Override image model")
    parser.add_argument("--author", help="Override project author")
    parser.add_argument("--license", help="Override project license")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add", help="Add rows, one per utterance")
    p.add_argument("utterances", nargs="+")

    p = sub.add_parser("import-phrases", help="Add one row per non-blank line of a text file")
    p.add_argument("file")

    sub.add_parser("load-canonical", help="Replace the working set with the reference rows")

    p = sub.add_parser("list", help="List rows")
    p.add_argument("--filter", dest="filter_text", help="Case-insensitive utterance filter")
    p.add_argument("--sort", choices=[k.value for k in SortKey], default=SortKey.ALPHABETICAL.value)

    p = sub.add_parser("show", help="Show one row as JSON")
    p.add_argument("id")

    p = sub.add_parser("run", help="Run the generation cascade")
    p.add_argument("ids", nargs="*")
    p.add_argument("--all", action="store_true", help="Every row in the working set")
    p.add_argument("--concurrency", type=int, help="Maximum cascades running at once")

    p = sub.add_parser("stage", help="Run a single stage")
    p.add_argument("id")
    p.add_argument("stage", choices=[s.value for s in GENERATION_STAGES])

    p = sub.add_parser("spatial", help="Regenerate the spatial prompt from the current elements")
    p.add_argument("id")

    p = sub.add_parser("edit", help="Edit a row payload by hand")
    p.add_argument("id")
    p.add_argument("--utterance")
    p.add_argument("--spatial-prompt")
    p.add_argument("--analysis-file", help="JSON file with the analysis record")
    p.add_argument("--elements-file", help="JSON file with the nested element list")

    p = sub.add_parser("evaluate", help="Commit evaluation scores")
    p.add_argument("id")
    p.add_argument("--scores", nargs=len(AXES), type=int, metavar="N",
                   help=f"Scores 1-5 in order: {', '.join(AXES)}")
    p.add_argument("--reasoning", default="")

    p = sub.add_parser("vectorize", help="Trace and structure an eligible row into SVG")
    p.add_argument("id")

    p = sub.add_parser("export", help="Export the project as JSON")
    p.add_argument("--output", help="Output file (default: exports directory)")

    p = sub.add_parser("import", help="Replace the working set with an exported project")
    p.add_argument("file")

    p = sub.add_parser("delete", help="Delete a row")
    p.add_argument("id")

    sub.add_parser("clear", help="Delete every row")
    sub.add_parser("report", help="Status and evaluation summary")
    sub.add_parser("library", help="List structured SVG artifacts")

    p = sub.add_parser("config", help="Show the resolved configuration")
    p.add_argument("--save", action="store_true", help="Persist the resolved studio configuration")

    return parser


def resolve_runtime_config(args: argparse.Namespace, persisted=None) -> RuntimeConfig:
    """Resolve persisted, user-file and command-line configuration."""
    user_cfg_dict = load_user_config_dict(args.config) if args.config else {}
    user_cfg = UserConfig.model_validate(user_cfg_dict)

    cli_dict = {
        k: v
        for k, v in {
            "lang": args.lang,
            "aspect_ratio": args.aspect_ratio,
            "image_model": args.image_model,
            "author": args.author,
            "license": args.license,
            "base_dir": args.base_dir,
            "db_path": args.db_path,
            "concurrency": getattr(args, "concurrency", None),
            "log_level": "DEBUG" if args.verbose else None,
        }.items()
        if v is not None
    }
    cli_cfg = CLIConfig.model_validate(cli_dict)

    return resolve_config(persisted, user_cfg, cli_cfg)


def _print_row_line(row) -> None:
    stages = " ".join(f"{stage.value[:4]}={row.status_of(stage).value}" for stage in Stage)
    print(f"{row.id:32s} {row.status:10s} {stages}  {row.utterance}")


def _read_json_file(path: str):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class StudioSession:
    """One CLI invocation: storage, orchestrator and resolved configuration."""

    def __init__(self, args: argparse.Namespace, settings: StudioSettings):
        self.args = args
        self.settings = settings

        # Operational settings first; the studio part needs the store
        bootstrap = resolve_runtime_config(args)
        self.output_dirs = setup_workspace_directories(
            bootstrap.base_dir or settings.pictonet_base_dir
        )
        self.activity_log = ActivityLog()
        setup_logging(bootstrap.log_level, get_log_path(self.output_dirs), self.activity_log)

        db_path = bootstrap.db_path or settings.pictonet_db_path or get_db_path(self.output_dirs)
        self.storage = SQLiteKeyValueStorage(db_path)
        self.store = RowStore(self.storage)

        self.runtime = resolve_runtime_config(args, self.store.config)
        self.config = self.runtime.studio

        online = args.command in ONLINE_COMMANDS
        generator = None
        vectorizer = structurer = None
        if online:
            generator = GeminiGenerator(settings.gemini_api_key, text_model=settings.text_model,
                                        timeout_ms=settings.http_timeout_ms)
        if args.command == "vectorize":
            vectorizer = VtracerVectorizer()
            structurer = GeminiStructurer(settings.gemini_api_key, model=settings.structuring_model,
                                          timeout_ms=settings.http_timeout_ms)

        self.studio = StudioOrchestrator(
            self.store, generator,
            vectorizer=vectorizer, structurer=structurer,
            activity_log=self.activity_log,
        )

    def close(self) -> None:
        self.storage.close()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def cmd_add(self) -> int:
        for utterance in self.args.utterances:
            print(self.studio.create_row(utterance))
        return 0

    def cmd_import_phrases(self) -> int:
        text = Path(self.args.file).read_text(encoding="utf-8")
        ids = self.studio.import_phrases(text)
        print(f"Imported {len(ids)} phrases")
        return 0

    def cmd_load_canonical(self) -> int:
        count = self.studio.load_canonical()
        print(f"Loaded {count} canonical rows")
        return 0

    def cmd_list(self) -> int:
        rows = self.store.list(filter_text=self.args.filter_text, sort_key=self.args.sort)
        for row in rows:
            _print_row_line(row)
        print(f"{len(rows)} of {len(self.store)} rows")
        return 0

    def cmd_show(self) -> int:
        row = self.store.get(self.args.id)
        if row is None:
            print(f"Row not found: {self.args.id}", file=sys.stderr)
            return 1
        print(json.dumps(row.to_document(), indent=2, ensure_ascii=False))
        return 0

    def cmd_run(self) -> int:
        ids = self.store.ids() if self.args.all else self.args.ids
        if not ids:
            print("Nothing to run: give row ids or --all", file=sys.stderr)
            return 1
        results = asyncio.run(
            self.studio.run_cascades(ids, self.runtime.concurrency, self.config)
        )
        for result in results:
            detail = f" at {result.stage.value}" if result.stage is not None else ""
            error = f": {result.error}" if result.error else ""
            print(f"{result.identity}: {result.state.value}{detail}{error}")
        return 0 if all(r.ok for r in results) else 1

    def cmd_stage(self) -> int:
        outcome = asyncio.run(self.studio.run_stage(self.args.id, self.args.stage, self.config))
        print(f"{outcome.identity} {outcome.stage.value}: {outcome.result.value}"
              + (f" ({outcome.error})" if outcome.error else ""))
        return 0 if outcome.ok else 1

    def cmd_spatial(self) -> int:
        try:
            text = asyncio.run(self.studio.regenerate_spatial_prompt(self.args.id, self.config))
        except CollaboratorError as e:
            print(f"Spatial prompt failed: {e}", file=sys.stderr)
            return 1
        if text is None:
            print("Row needs a parsed analysis and elements", file=sys.stderr)
            return 1
        print(text)
        return 0

    def cmd_edit(self) -> int:
        partial = {}
        if self.args.utterance is not None:
            partial["utterance"] = self.args.utterance
        if self.args.spatial_prompt is not None:
            partial["spatial_prompt"] = self.args.spatial_prompt
        if self.args.analysis_file:
            partial["analysis"] = _read_json_file(self.args.analysis_file)
        if self.args.elements_file:
            partial["elements"] = _read_json_file(self.args.elements_file)
        if not partial:
            print("Nothing to edit", file=sys.stderr)
            return 1
        if self.args.id not in self.store:
            print(f"Row not found: {self.args.id}", file=sys.stderr)
            return 1
        self.studio.edit_row(self.args.id, partial)
        _print_row_line(self.store.get(self.args.id))
        return 0

    def cmd_evaluate(self) -> int:
        evaluation = None
        if self.args.scores:
            evaluation = {**dict(zip(AXES, self.args.scores)), "reasoning": self.args.reasoning}
        outcome = self.studio.evaluate(self.args.id, evaluation)
        if not outcome.ok:
            print(f"Evaluation failed: {outcome.error}", file=sys.stderr)
            return 1
        row = self.store.get(self.args.id)
        print(f"Evaluation average: {row.evaluation.average:.2f}")
        eligibility = self.studio.eligibility(self.args.id)
        print("Eligible for vector structuring" if eligibility
              else f"Not eligible: {eligibility.reason}")
        return 0

    def cmd_vectorize(self) -> int:
        def progress(value: int) -> None:
            logger.info("Vectorization progress: %d%%", value)

        def status(value: str) -> None:
            logger.info("Structuring: %s", value)

        outcome = asyncio.run(self.studio.generate_vector(
            self.args.id, self.config, on_progress=progress, on_status=status,
        ))
        if not outcome.ok:
            print(f"{outcome.state.value}: {outcome.reason}", file=sys.stderr)
            return 1
        path = get_svg_path(self.output_dirs, outcome.pictogram.utterance)
        path.write_text(outcome.pictogram.svg, encoding="utf-8")
        print(f"Structured SVG written to {path}")
        return 0

    def cmd_export(self) -> int:
        text = self.studio.export_project()
        path = Path(self.args.output) if self.args.output else get_export_path(
            self.output_dirs, self.store.config.author
        )
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        print(f"Exported {len(self.store)} rows to {path}")
        return 0

    def cmd_import(self) -> int:
        text = Path(self.args.file).read_text(encoding="utf-8")
        document = self.studio.import_project(text)
        print(f"Imported {len(document.rows)} rows"
              + (" (legacy format)" if document.legacy else ""))
        return 0

    def cmd_delete(self) -> int:
        if not self.studio.delete_row(self.args.id):
            print(f"Row not found: {self.args.id}", file=sys.stderr)
            return 1
        return 0

    def cmd_clear(self) -> int:
        self.studio.clear_all()
        return 0

    def cmd_report(self) -> int:
        rows = [self.store.get(identity) for identity in self.store.ids()]
        frame = rows_frame(rows)
        if not frame.empty:
            print(frame["status"].value_counts().to_string())
        scores = evaluation_frame(rows)
        if scores.empty:
            print("No evaluated rows")
        else:
            print(evaluation_summary(scores).round(2).to_string())
        log_evaluation_statistics(scores)
        self.studio.log_statistics()
        return 0

    def cmd_library(self) -> int:
        for pictogram in self.studio.library.all():
            print(f"{pictogram.id}  {pictogram.score:.2f}  {pictogram.source_row_id}  {pictogram.utterance}")
        print(f"{len(self.studio.library)} artifacts")
        return 0

    def cmd_config(self) -> int:
        if self.args.save:
            self.store.set_config(self.config)
        print(json.dumps(self.runtime.model_dump(mode="json"), indent=2, ensure_ascii=False))
        return 0

    def dispatch(self) -> int:
        handler = getattr(self, "cmd_" + self.args.command.replace("-", "_"))
        return handler()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point of the ``pictonet`` command.

    Configuration and import problems are reported on stderr with exit
    code 2; a command that ran but did not succeed exits with 1.
    """
    args = build_parser().parse_args(argv)
    settings = StudioSettings()

    try:
        session = StudioSession(args, settings)
    except (FileNotFoundError, ValueError, CollaboratorError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        return session.dispatch()
    except ImportFormatError as e:
        print(f"Import failed: {e}", file=sys.stderr)
        return 2
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("Interrupted; in-flight stages will be idle on the next start", file=sys.stderr)
        return 130
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
