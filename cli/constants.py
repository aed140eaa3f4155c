"""CLI constants and configuration."""

from prompt_toolkit.styles import Style

COMMANDS = ["upload", "download", "manifest", "estimate", "backends", "health", "clear", "help", "exit"]

STYLE = Style.from_dict(
    {
        "prompt": "#2F9BD6 bold",
        "command": "#0088ff bold",
    }
)

SKY_BLUE = "\033[38;2;47;155;214m"
GREEN = "\033[32m"
RED = "\033[31m"
RESET = "\033[0m"

LOGO = f"""{SKY_BLUE}
 ███████╗██╗  ██╗ █████╗ ██████╗ ██████╗  ██████╗██╗      ██████╗ ██╗   ██╗██████╗
 ██╔════╝██║  ██║██╔══██╗██╔══██╗██╔══██╗██╔════╝██║     ██╔═══██╗██║   ██║██╔══██╗
 ███████╗███████║███████║██████╔╝██║  ██║██║     ██║     ██║   ██║██║   ██║██║  ██║
 ╚════██║██╔══██║██╔══██║██╔══██╗██║  ██║██║     ██║     ██║   ██║██║   ██║██║  ██║
 ███████║██║  ██║██║  ██║██║  ██║██████╔╝╚██████╗███████╗╚██████╔╝╚██████╔╝██████╔╝
 ╚══════╝╚═╝  ╚═╝╚═╝  ╚═╝╚═╝  ╚═╝╚═════╝  ╚═════╝╚══════╝ ╚═════╝  ╚═════╝ ╚═════╝
{RESET}"""

WELCOME_TITLE = "ShardCloud CLI - Encrypted sharded storage"
WELCOME_HELP = "Type 'help' for commands or 'exit' to quit.\n"

PROMPT_TEXT = "shardcloud> "

CONFIG_DIR_NAME = ".shardcloud"
UPLOADS_DIR = "uploads"
DOWNLOADS_DIR = "downloads"

HELP_TEXT = """Available commands:
  upload <path>                          Encrypt, shard and store a file; prints its manifest CID
  download <manifest_cid> [output_path]  Rebuild a file (defaults to downloads/<original name>)
  manifest <manifest_cid>                Show how a file's chunks are spread over the backends
  estimate <path>                        Rough upload time for a local file
  backends                               List storage backends and whether they are configured
  health                                 Probe every storage backend
  clear                                  Clear screen and redisplay welcome message
  help                                   Show this help
  exit                                   Exit REPL

Examples:
  upload uploads/report.pdf
  manifest QmXoypizjW3WknFiJnKLwHCnL72vedxjQkDDP1mXWo6uco
  download QmXoypizjW3WknFiJnKLwHCnL72vedxjQkDDP1mXWo6uco downloads/copy.pdf
  estimate uploads/video.mp4"""
