import sys
import argparse
import math
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple

__version__ = "1.0"

# 36 symbols laid out row-major in the substitution grid
ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
GRID_SIZE = 6
LABEL_LENGTH = GRID_SIZE
MIN_KEYWORD_LENGTH = 2
FILLER = "X"
DEFAULT_LABEL = "ADFGVX"

# Verbose mode (disabled by default, enabled with --verbose)
VERBOSE = False

def log_info(msg: str):
    """Print info message only if verbose mode is enabled."""
    if VERBOSE:
        print(f"[INFO] {msg}", file=sys.stderr)

def log_warn(msg: str):
    """Print warning message only if verbose mode is enabled."""
    if VERBOSE:
        print(f"[WARN] {msg}", file=sys.stderr)

# ==========================================
#  ERRORS
# ==========================================

class HybridCipherError(ValueError):
    """Base class for every error raised by the hybrid cipher."""


class ParameterError(HybridCipherError):
    """A pipeline parameter was rejected before any stage ran."""


class InvalidBlockSize(ParameterError):
    pass


class InvalidLabel(ParameterError):
    pass


class InvalidKeyword(ParameterError):
    pass


class UnsupportedCharacter(HybridCipherError):
    """Raised when the substitution stage meets a symbol outside ALPHABET."""

    def __init__(self, char: str, position: int):
        super().__init__(f"Character {char!r} at position {position} is not in the substitution alphabet")
        self.char = char
        self.position = position


class MalformedCiphertext(HybridCipherError):
    pass


def validate_block_size(block_size: int) -> int:
    if isinstance(block_size, bool) or not isinstance(block_size, int):
        raise InvalidBlockSize(f"Block size must be an integer, got {block_size!r}")
    if block_size < 1:
        raise InvalidBlockSize(f"Block size must be at least 1, got {block_size}")
    return block_size

def validate_label(label: str) -> str:
    if not isinstance(label, str) or len(label) != LABEL_LENGTH:
        raise InvalidLabel(f"Label must be exactly {LABEL_LENGTH} characters, got {label!r}")
    if len(set(label)) != LABEL_LENGTH:
        raise InvalidLabel(f"Label characters must be unique, got {label!r}")
    return label

def validate_keyword(keyword: str) -> str:
    if not isinstance(keyword, str) or len(keyword) < MIN_KEYWORD_LENGTH:
        raise InvalidKeyword(f"Keyword must be at least {MIN_KEYWORD_LENGTH} characters, got {keyword!r}")
    return keyword

# ==========================================
#  FRAMEWORK: Abstract Base Class & Registry
# ==========================================

class CipherStage(ABC):
    """Abstract base class that all pipeline stages must implement."""

    # Name of the PipelineParameters field handed to the constructor
    parameter = None

    @property
    @abstractmethod
    def name(self) -> str:
        """The short name used in listings and stage traces."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Short description for help text."""
        pass

    @abstractmethod
    def encode(self, text: str) -> str:
        pass

    @abstractmethod
    def decode(self, text: str) -> str:
        pass

STAGE_REGISTRY: Dict[str, type] = {}

def register_stage(cls):
    """Decorator to auto-register stages."""
    STAGE_REGISTRY[cls.name] = cls
    return cls

# ==========================================
#  STAGE 1: Shift (Caesar)
# ==========================================

@register_stage
class ShiftCipher(CipherStage):
    name = "shift"
    description = "Caesar rotation of ASCII letters, case-preserving."
    parameter = "shift"

    def __init__(self, shift: int = 0):
        self.shift = shift

    @staticmethod
    def _rotate(text: str, shift: int) -> str:
        shift %= 26
        result = []
        for char in text:
            if 'a' <= char <= 'z':
                result.append(chr((ord(char) - ord('a') + shift) % 26 + ord('a')))
            elif 'A' <= char <= 'Z':
                result.append(chr((ord(char) - ord('A') + shift) % 26 + ord('A')))
            else:
                result.append(char)
        return ''.join(result)

    def encode(self, text: str) -> str:
        return self._rotate(text, self.shift)

    def decode(self, text: str) -> str:
        return self._rotate(text, -self.shift)

# ==========================================
#  STAGE 2: Block Reversal
# ==========================================

@register_stage
class BlockReverser(CipherStage):
    """
    Reverses consecutive runs of `block_size` non-space characters.

    Spaces are lifted out before chunking and keep their original positions,
    so the transform is its own inverse for a given block size.
    """

    name = "reverse"
    description = "Reverses fixed-size blocks of non-space characters (self-inverse)."
    parameter = "block_size"

    def __init__(self, block_size: int = 1):
        self.block_size = validate_block_size(block_size)

    def apply(self, text: str) -> str:
        chars = [c for c in text if c != ' ']
        size = self.block_size
        blocks = [chars[i:i + size][::-1] for i in range(0, len(chars), size)]
        flipped = iter(c for block in blocks for c in block)
        return ''.join(' ' if c == ' ' else next(flipped) for c in text)

    def encode(self, text: str) -> str:
        return self.apply(text)

    def decode(self, text: str) -> str:
        return self.apply(text)

# ==========================================
#  STAGE 3: Grid Substitution (6x6)
# ==========================================

@register_stage
class GridSubstitution(CipherStage):
    """
    Polybius-style substitution over a 6x6 grid of ALPHABET.

    Each symbol becomes a digraph: the label character of its row followed
    by the label character of its column. The label only names rows and
    columns; grid contents never depend on it.

    ASCII letters are looked up case-insensitively because the grid holds
    lowercase letters, so decoding always yields lowercase text. Any other
    character must match a grid symbol exactly.
    """

    name = "substitute"
    description = "Maps each a-z/0-9 symbol to a row/column label digraph."
    parameter = "label"

    def __init__(self, label: str = DEFAULT_LABEL, grid: Optional[Tuple[str, ...]] = None):
        self.label = validate_label(label)
        self.grid = grid if grid is not None else self.build_grid()
        self._positions = {
            symbol: (row, col)
            for row, line in enumerate(self.grid)
            for col, symbol in enumerate(line)
        }

    @staticmethod
    def build_grid() -> Tuple[str, ...]:
        """Fill the grid row-major from ALPHABET."""
        return tuple(ALPHABET[row * GRID_SIZE:(row + 1) * GRID_SIZE] for row in range(GRID_SIZE))

    def encode(self, text: str) -> str:
        result = []
        for position, char in enumerate(text):
            key = char.lower() if 'A' <= char <= 'Z' else char
            try:
                row, col = self._positions[key]
            except KeyError:
                raise UnsupportedCharacter(char, position) from None
            result.append(self.label[row] + self.label[col])
        return ''.join(result)

    def decode(self, text: str) -> str:
        if len(text) % 2:
            raise MalformedCiphertext(f"Substituted text must have even length, got {len(text)}")
        result = []
        for i in range(0, len(text), 2):
            row = self.label.find(text[i])
            col = self.label.find(text[i + 1])
            if row < 0 or col < 0:
                raise MalformedCiphertext(
                    f"Digraph {text[i:i + 2]!r} at position {i} is not addressed by label {self.label!r}")
            result.append(self.grid[row][col])
        return ''.join(result)

# ==========================================
#  STAGE 4: Columnar Transposition
# ==========================================

@register_stage
class ColumnarTransposition(CipherStage):
    """
    Keyword-driven columnar transposition.

    Text is written row-major into len(keyword) columns, short rows are
    filled with FILLER, and columns are read top to bottom in the order of
    the keyword's characters (ties keep their original order).

    decode() does not strip the filler it reconstructs.
    """

    name = "transpose"
    description = "Keyword-ordered columnar transposition with 'X' padding."
    parameter = "keyword"

    def __init__(self, keyword: str):
        self.keyword = validate_keyword(keyword)
        self.order = self.column_order(self.keyword)

    @staticmethod
    def column_order(keyword: str) -> List[int]:
        # sorted() is stable, so repeated characters keep left-to-right order
        return sorted(range(len(keyword)), key=lambda index: keyword[index])

    def layout(self, text: str) -> List[str]:
        """Return the padded grid rows for `text`."""
        cols = len(self.keyword)
        rows = math.ceil(len(text) / cols)
        padded = text + FILLER * (rows * cols - len(text))
        return [padded[row * cols:(row + 1) * cols] for row in range(rows)]

    def encode(self, text: str) -> str:
        rows = self.layout(text)
        return ''.join(line[col] for col in self.order for line in rows)

    def decode(self, text: str) -> str:
        if not text:
            raise MalformedCiphertext("Cannot reverse a transposition of empty text")
        cols = len(self.keyword)
        rows = math.ceil(len(text) / cols)
        grid = [[FILLER] * cols for _ in range(rows)]
        chars = iter(text)
        for col in self.order:
            for row in range(rows):
                char = next(chars, None)
                if char is None:
                    break
                grid[row][col] = char
        return ''.join(''.join(line) for line in grid)

# ==========================================
#  PIPELINE: Orchestration
# ==========================================

PIPELINE_ORDER = ("shift", "reverse", "substitute", "transpose")

TraceCallback = Callable[[str, str], None]


class PipelineParameters(NamedTuple):
    """Everything needed to run the pipeline in either direction."""

    shift: int
    block_size: int
    label: str
    keyword: str

    def validate(self) -> "PipelineParameters":
        if isinstance(self.shift, bool) or not isinstance(self.shift, int):
            raise ParameterError(f"Shift must be an integer, got {self.shift!r}")
        validate_block_size(self.block_size)
        validate_label(self.label)
        validate_keyword(self.keyword)
        return self


def build_stages(params: PipelineParameters) -> List[CipherStage]:
    """Instantiate the registered stages in encryption order."""
    stages = []
    for name in PIPELINE_ORDER:
        cls = STAGE_REGISTRY[name]
        stages.append(cls(getattr(params, cls.parameter)))
    return stages

def split_padding(text: str, label: str) -> Tuple[str, str]:
    """
    Separate transposition filler that cannot belong to a digraph.

    Substitution always emits an even number of label characters. When the
    filler is not a label character every trailing filler is padding; when
    it is, only an unpaired last character can be told apart; an even run
    of filler stays in the body and decodes as grid symbols.
    """
    if FILLER not in label:
        body = text.rstrip(FILLER)
    elif len(text) % 2:
        body = text[:-1]
    else:
        body = text
    return body, text[len(body):]

def encrypt(text: str, params: PipelineParameters, trace: Optional[TraceCallback] = None) -> str:
    params.validate()
    for stage in build_stages(params):
        text = stage.encode(text)
        if trace:
            trace(stage.name, text)
    return text

def decrypt(cipher_text: str, params: PipelineParameters, trace: Optional[TraceCallback] = None) -> str:
    params.validate()
    stages = build_stages(params)

    transposition = stages[-1]
    text = transposition.decode(cipher_text)
    if trace:
        trace(transposition.name, text)

    text, padding = split_padding(text, params.label)
    if padding:
        log_info(f"Carrying {len(padding)} padding character(s) through to the plaintext.")

    for stage in reversed(stages[:-1]):
        text = stage.decode(text)
        if trace:
            trace(stage.name, text)
    return text + padding

# ==========================================
#  DISPLAY: Diagnostic Tables
# ==========================================

def format_substitution_table(grid: Tuple[str, ...], label: str) -> str:
    lines = ["Substitution Table:", "    " + " ".join(label), "  +" + "-" * 20]
    for row_label, line in zip(label, grid):
        lines.append(f"{row_label} | " + " ".join(line))
    return "\n".join(lines)

def format_transposition_table(keyword: str, text: str) -> str:
    rows = ColumnarTransposition(keyword).layout(text)
    lines = ["Transposition Table:", "".join(f"{c:>3}" for c in keyword), "---" * len(keyword)]
    lines.extend("".join(f"{c:>3}" for c in line) for line in rows)
    return "\n".join(lines)

# ==========================================
#  CLI LOGIC
# ==========================================

ENCRYPT_CAPTIONS = {
    "shift": "Caesar Cipher Text",
    "reverse": "Block Reversal Text",
    "substitute": "Substituted Text",
}

DECRYPT_CAPTIONS = {
    "transpose": "Decrypted Transposition",
    "substitute": "Decrypted Substitution",
    "reverse": "Decrypted Block Reversal",
}


class StageReporter:
    """Trace callback that reports intermediate stage results."""

    def __init__(self, params: PipelineParameters, decrypting: bool,
                 emit: Callable[[str], None], show_table: Optional[Callable[[str], None]] = None):
        self.params = params
        self.decrypting = decrypting
        self.emit = emit
        self.show_table = show_table

    def __call__(self, stage_name: str, text: str):
        captions = DECRYPT_CAPTIONS if self.decrypting else ENCRYPT_CAPTIONS
        if stage_name in captions:
            self.emit(f"{captions[stage_name]}: {text}")
        # The transposition grid is the substituted text in both directions
        grid_stage = "transpose" if self.decrypting else "substitute"
        if self.show_table and stage_name == grid_stage:
            self.show_table(format_transposition_table(self.params.keyword, text))


def list_stages():
    """Print the pipeline stages in encryption order."""
    print("\nPipeline Stages:")
    print("=" * 60)
    for position, name in enumerate(PIPELINE_ORDER, 1):
        stage = STAGE_REGISTRY[name]
        print(f"  {position}. {name:<12} [{stage.parameter:<10}]  {stage.description}")
    print("=" * 60)
    print(f"\nDecryption runs the {len(PIPELINE_ORDER)} stages in reverse order.")

def _prompt_int(message: str, validator: Optional[Callable[[int], int]] = None) -> int:
    while True:
        raw = input(message)
        try:
            value = int(raw.strip())
        except ValueError:
            print("\nInvalid input. Enter numeric value.")
            continue
        if validator is None:
            return value
        try:
            return validator(value)
        except ParameterError as e:
            print(f"\nInvalid input. {e}.")

def _prompt_key(message: str, validator: Callable[[str], str]) -> str:
    while True:
        try:
            return validator(input(message))
        except ParameterError as e:
            print(f"\nInvalid key. {e}.")

def prompt_parameters(args) -> PipelineParameters:
    """Ask for every parameter not already supplied on the command line."""
    shift = args.shift if args.shift is not None else _prompt_int("Enter Caesar shift: ")
    if args.block_size is not None:
        block_size = args.block_size
    else:
        block_size = _prompt_int("Enter block size for reversal: ", validate_block_size)
    if args.label is not None:
        label = args.label
    else:
        label = _prompt_key(f"Enter 6-letter substitution key (e.g. {DEFAULT_LABEL}): ", validate_label)
    if args.keyword is not None:
        keyword = args.keyword
    else:
        keyword = _prompt_key("Enter transposition key: ", validate_keyword)
    return PipelineParameters(shift, block_size, label, keyword)

def interactive_session(args):
    """Prompt-driven loop: one encryption or decryption per round."""
    while True:
        mode = input("\nDo you want to (encrypt/decrypt)? ").strip().lower()
        if mode in ("e", "encrypt"):
            decrypting = False
        elif mode in ("d", "decrypt"):
            decrypting = True
        else:
            print("\nInvalid option. Please type 'encrypt' or 'decrypt'.")
            continue

        text = input("Enter ciphertext: " if decrypting else "Enter plaintext (A-Z, 0-9): ")

        try:
            params = prompt_parameters(args).validate()
        except ParameterError as e:
            # only reachable when a command-line value was invalid
            print(f"\nInvalid parameters: {e}")
            return

        print("\n" + format_substitution_table(GridSubstitution.build_grid(), params.label))
        reporter = StageReporter(params, decrypting, emit=lambda line: print("\n" + line),
                                 show_table=lambda table: print("\n" + table))
        try:
            if decrypting:
                print(f"\nFinal Decrypted Text: {decrypt(text, params, trace=reporter)}")
            else:
                print(f"\nFinal Encrypted Ciphertext: {encrypt(text, params, trace=reporter)}")
        except HybridCipherError as e:
            print(f"\n{'Decrypt' if decrypting else 'Encrypt'} Error: {e}")

        again = input("\nDo you want to continue (y/n)? ").strip().lower()
        if again not in ("y", "yes"):
            break

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hybrid-cipher",
        description="Hybrid Cipher Suite: shift, block reversal, 6x6 substitution, columnar transposition.\n"
                    "Runs interactively when neither -e nor -d is given.",
        formatter_class=argparse.RawTextHelpFormatter
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    # Main action group
    action_group = parser.add_mutually_exclusive_group()
    action_group.add_argument("-e", "--encrypt", action="store_true", help="Encrypt mode")
    action_group.add_argument("-d", "--decrypt", action="store_true", help="Decrypt mode")
    action_group.add_argument("-l", "--list", action="store_true", help="List the pipeline stages")

    # Pipeline parameters
    parser.add_argument("--shift", type=int, metavar="N", help="Caesar shift (any integer)")
    parser.add_argument("--block-size", type=int, metavar="N", help="Block size for reversal (>= 1)")
    parser.add_argument("--label", metavar="LABEL",
                        help=f"6 unique characters naming grid rows/columns (default: {DEFAULT_LABEL})")
    parser.add_argument("--keyword", metavar="WORD", help="Transposition keyword (at least 2 characters)")

    parser.add_argument("--tables", action="store_true",
                        help="Print the substitution and transposition tables to stderr")

    # Verbose output
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable verbose output (stage results, info and warning messages)")

    # I/O options
    io_group = parser.add_mutually_exclusive_group()
    io_group.add_argument("-t", "--text", help="Direct text input")
    io_group.add_argument("-i", "--input", help="Input file path")

    parser.add_argument("-o", "--output", help="Output file path")
    return parser


def main(argv: Optional[List[str]] = None):
    global VERBOSE

    parser = build_parser()
    args = parser.parse_args(argv)
    VERBOSE = args.verbose

    # Handle --list action
    if args.list:
        list_stages()
        return

    if not (args.encrypt or args.decrypt):
        try:
            interactive_session(args)
        except (EOFError, KeyboardInterrupt):
            print()
        return

    missing = [flag for flag, value in (("--shift", args.shift), ("--block-size", args.block_size),
                                        ("--keyword", args.keyword)) if value is None]
    if missing:
        parser.error(f"{', '.join(missing)} required with -e/-d")

    label = args.label if args.label is not None else DEFAULT_LABEL
    try:
        params = PipelineParameters(args.shift, args.block_size, label, args.keyword).validate()
    except ParameterError as e:
        sys.exit(f"Invalid parameters: {e}")
    if params.shift % 26 == 0:
        log_warn(f"Shift {params.shift} is a multiple of 26; the shift stage leaves letters unchanged.")

    # 1. READ INPUT
    source_text = ""
    if args.text is not None:
        source_text = args.text
    elif args.input:
        try:
            with open(args.input, "r", encoding="utf-8") as f:
                source_text = f.read()
        except FileNotFoundError:
            sys.exit(f"Error: File '{args.input}' not found.")
    elif not sys.stdin.isatty():
        source_text = sys.stdin.read()
    else:
        print("[CIPHER] Paste input below. Ctrl+D (Unix) or Ctrl+Z (Win) to end:")
        try:
            source_text = sys.stdin.read()
        except KeyboardInterrupt:
            sys.exit(0)
    source_text = source_text.rstrip("\r\n")

    # 2. RUN PIPELINE
    show_table = None
    if args.tables:
        print(format_substitution_table(GridSubstitution.build_grid(), params.label), file=sys.stderr)
        show_table = lambda table: print(table, file=sys.stderr)
    reporter = StageReporter(params, args.decrypt, emit=log_info, show_table=show_table)

    if args.encrypt:
        try:
            result = encrypt(source_text, params, trace=reporter)
        except HybridCipherError as e:
            sys.exit(f"Encrypt Error: {e}")
    else:
        try:
            result = decrypt(source_text, params, trace=reporter)
        except HybridCipherError as e:
            sys.exit(f"Decrypt Error: {e}")

    # 3. WRITE OUTPUT
    if args.output:
        try:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(result)
                f.write("\n")
        except OSError as e:
            sys.exit(f"Error writing output: {e}")
    else:
        print(result)

if __name__ == "__main__":
    main()
