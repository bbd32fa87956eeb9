"""Command line entry point: transcribe a PCM stream window by window."""

import rich_click as click
from rich.console import Console
from rich.table import Table

from . import __version__
from .core.config import ConfigLoader, get_config
from .core.exceptions import ChunkscribeError
from .core.logging import setup_logging
from .core.run_config import TranscribeConfig
from .transcription.pipeline import build_transcriber, open_audio_source

click.rich_click.USE_RICH_MARKUP = True


def _show_run_config(console: Console, run_config: TranscribeConfig) -> None:
    table = Table(title="chunkscribe run configuration", show_header=False)
    table.add_column("setting", style="cyan")
    table.add_column("value")
    for name, value in vars(run_config).items():
        table.add_row(name, repr(value))
    console.print(table)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="chunkscribe")
@click.option("--input-files-base-path", help=" 📁 Base path prefixed to every non-absolute input file")
@click.option("--feature-module-file", help=" 🎛️  Serialized feature extraction module")
@click.option("--acoustic-module-file", help=" 🧠 Serialized acoustic module")
@click.option("--tokens-file", help=" 🔤 Token file, one token per line")
@click.option("--lexicon-file", help=" 📖 Lexicon file mapping words to token spellings")
@click.option("--language-model-file", help=" 📊 ARPA language model (empty for none)")
@click.option("--decoder-options-file", help=" ⚙️  JSON file with the beam search options")
@click.option("--input-audio-file", help=" 🎤 16 kHz mono 16-bit PCM or WAV file (empty reads stdin)")
@click.option("--silence-token", help=" 🤫 Token marking silence between words")
@click.option("--window-ms", type=click.IntRange(min=1), help=" ⏱️  Transcript window length in milliseconds")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help=" 🗂️  Configuration file path")
@click.option("--debug", is_flag=True, help=" 🐛 Enable detailed debug logging")
def main(
    input_files_base_path,
    feature_module_file,
    acoustic_module_file,
    tokens_file,
    lexicon_file,
    language_model_file,
    decoder_options_file,
    input_audio_file,
    silence_token,
    window_ms,
    config_path,
    debug,
):
    """🎙️ [bold cyan]chunkscribe[/bold cyan] - Streaming speech recognition, one line per audio window

    \b
    Loads a feature module, an acoustic module, tokens, lexicon, language model
    and decoder options, then prints the words recognized in every window:

    \b
      [green]start: 0 ms - end: 500 ms : hello world[/green]

    \b
    [bold yellow]🎯 Quick Start:[/bold yellow]
    \b
      [green]chunkscribe --input-files-base-path=model/ --input-audio-file=audio.wav[/green]
      [green]arecord -r 16000 -f S16_LE -c 1 | chunkscribe --input-files-base-path=model/[/green]
    """
    try:
        loader = ConfigLoader(config_path) if config_path else get_config()
        run_config = TranscribeConfig.from_sources(
            loader,
            debug=debug,
            input_files_base_path=input_files_base_path,
            feature_module_file=feature_module_file,
            acoustic_module_file=acoustic_module_file,
            tokens_file=tokens_file,
            lexicon_file=lexicon_file,
            language_model_file=language_model_file,
            decoder_options_file=decoder_options_file,
            input_audio_file=input_audio_file,
            silence_token=silence_token,
            window_ms=window_ms,
        )
        log_level = "DEBUG" if debug else loader.log_level
        log_to_console = loader.log_to_console
        log_to_file = loader.log_to_file
    except ChunkscribeError as e:
        raise click.ClickException(str(e)) from e

    logger = setup_logging(
        "chunkscribe",
        log_level=log_level,
        include_console=True if log_to_console else None,
        include_file=log_to_file,
    )
    if debug:
        _show_run_config(Console(stderr=True), run_config)

    try:
        transcriber = build_transcriber(run_config)
        source = open_audio_source(run_config, stdin=click.get_binary_stream("stdin"))
        try:
            lines = transcriber.run(source, click.get_text_stream("stdout"))
        finally:
            if not run_config.reads_stdin:
                source.close()
    except ChunkscribeError as e:
        logger.error(f"Transcription failed: {e}")
        raise click.ClickException(str(e)) from e

    logger.info(f"Wrote {lines} transcript lines")


if __name__ == "__main__":
    main()
