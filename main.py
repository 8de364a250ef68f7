"""Application entrypoint."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from auto_paste import ClipboardPasteService
from config import JsonConfigStore, PipelineSettings
from desktop import (
    AccessibilityTrustOracle,
    LogNotifier,
    PynputInjector,
    PyperclipClipboard,
    QtClipboard,
)
from engines import LocalModelArtifacts, NemoAsrEngine, SileroVadEngine
from errors import DictationError
from models import CachePolicy, DictationState, ModelDescriptor, PREDEFINED_MODELS, PasteResult
from recorder import WavRecorder
from scheduler import QtScheduler
from session_controller import DictationController
from session_manager import ModelSessionManager
from store import JsonlTranscriptStore
from transcription import TranscriptionOrchestrator

logger = logging.getLogger("notescribe")

EXIT_OK = 0
EXIT_ERROR = 1


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logging.getLogger("nemo_logger").setLevel(logging.WARNING)
    logging.getLogger("torch").setLevel(logging.WARNING)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="notescribe", description="Offline dictation")
    parser.add_argument("-c", "--config", type=Path, help="Path to config.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command")

    transcribe_parser = subparsers.add_parser("transcribe", help="Transcribe a WAV file")
    transcribe_parser.add_argument("audio", type=Path)
    _add_model_args(transcribe_parser)
    transcribe_parser.add_argument("--no-vad", action="store_true", help="Skip VAD gating")
    transcribe_parser.add_argument("--paste", action="store_true", help="Paste at the cursor")
    transcribe_parser.add_argument("--enter", action="store_true", help="Press Return after pasting")

    record_parser = subparsers.add_parser("record", help="Record the microphone to a WAV file")
    record_parser.add_argument("output", type=Path)
    record_parser.add_argument("--seconds", type=float, default=5.0)

    dictate_parser = subparsers.add_parser("dictate", help="Record, transcribe and paste")
    dictate_parser.add_argument("--seconds", type=float, default=5.0)
    _add_model_args(dictate_parser)
    return parser


def _add_model_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--model", help="Model name, e.g. parakeet-tdt-0.6b-v2")
    parser.add_argument("--policy", choices=[p.value for p in CachePolicy])


def resolve_model(name: str) -> ModelDescriptor:
    return PREDEFINED_MODELS.get(name) or ModelDescriptor(name=name, display_name=name)


def build_orchestrator(
    config_store: JsonConfigStore,
    settings: PipelineSettings,
    policy: Optional[CachePolicy] = None,
) -> TranscriptionOrchestrator:
    manager = ModelSessionManager(
        asr_engine=NemoAsrEngine(),
        vad_engine=SileroVadEngine(),
        artifacts=LocalModelArtifacts(settings.models_dir),
        policy=policy or settings.session_cache_policy,
    )
    return TranscriptionOrchestrator(
        session_manager=manager,
        config_store=config_store,
        transcript_store=JsonlTranscriptStore(settings.history_path),
    )


def build_paste_service(settings: PipelineSettings) -> ClipboardPasteService:
    return ClipboardPasteService(
        clipboard=PyperclipClipboard() if settings.clipboard_backend == "text" else QtClipboard(),
        injector=PynputInjector(),
        trust=AccessibilityTrustOracle(),
        scheduler=QtScheduler(),
        notifier=LogNotifier(),
        preserve_clipboard=settings.preserve_clipboard,
    )


def _qt_app():
    try:
        from PySide6.QtGui import QGuiApplication
    except Exception as exc:  # pragma: no cover
        raise SystemExit(f"PySide6 is required to paste: {exc}")
    return QGuiApplication.instance() or QGuiApplication(sys.argv)


def cmd_transcribe(args: argparse.Namespace, config_store: JsonConfigStore) -> int:
    settings = config_store.load_settings()
    model = resolve_model(args.model or settings.model_name)
    policy = CachePolicy(args.policy) if args.policy else None
    orchestrator = build_orchestrator(config_store, settings, policy)
    use_vad = False if args.no_vad else settings.vad_enabled_file
    try:
        outcome = orchestrator.transcribe_with_outcome(args.audio, model, use_vad=use_vad)
    except DictationError as exc:
        logger.error("%s (%s)", exc.user_message, exc)
        return EXIT_ERROR

    for warning in outcome.warnings:
        logger.warning("degraded: %s", warning)
    text = outcome.transcript.text
    print(text)
    if not args.paste or not text.strip():
        return EXIT_OK

    app = _qt_app()
    paste_service = build_paste_service(settings)
    results: List[PasteResult] = []

    def _done(result: PasteResult) -> None:
        results.append(result)
        if result.success and args.enter:
            paste_service.press_enter()
        app.quit()

    paste_service.paste_at_cursor(text + " ", on_done=_done)
    if not results:
        app.exec()
    return EXIT_OK if results and results[0].success else EXIT_ERROR


def cmd_record(args: argparse.Namespace) -> int:
    recorder = WavRecorder()
    recorder.start()
    logger.info("Recording %.1fs to %s", args.seconds, args.output)
    time.sleep(args.seconds)
    recorder.stop(args.output)
    return EXIT_OK


def cmd_dictate(args: argparse.Namespace, config_store: JsonConfigStore) -> int:
    settings = config_store.load_settings()
    policy = CachePolicy(args.policy) if args.policy else None
    app = _qt_app()
    errors: List[str] = []

    def _on_error(code: str, message: str) -> None:
        errors.append(code)
        logger.error("%s: %s", code, message)

    def _on_state(_from: DictationState, to_state: DictationState) -> None:
        logger.info("dictation state: %s", to_state.value)
        if to_state == DictationState.IDLE:
            app.quit()

    controller = DictationController(
        recorder=WavRecorder(),
        orchestrator=build_orchestrator(config_store, settings, policy),
        paste_service=build_paste_service(settings),
        scheduler=QtScheduler(),
        config_store=config_store,
        model=resolve_model(args.model or settings.model_name),
        on_state_change=_on_state,
        on_error=_on_error,
    )
    controller.start_recording()
    time.sleep(args.seconds)
    transcript = controller.stop_and_transcribe()
    if transcript is not None:
        print(transcript.text)
    if controller.state != DictationState.IDLE:
        app.exec()
    return EXIT_ERROR if errors else EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    if args.command is None:
        parser.print_help()
        return EXIT_ERROR

    config_store = JsonConfigStore(path=args.config)
    if args.command == "transcribe":
        return cmd_transcribe(args, config_store)
    if args.command == "record":
        return cmd_record(args)
    return cmd_dictate(args, config_store)


if __name__ == "__main__":
    raise SystemExit(main())
