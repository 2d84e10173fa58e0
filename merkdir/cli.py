"""CLI entry point for merkdir."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.syntax import Syntax
from rich.table import Table

from merkdir import __version__
from merkdir.config import MerkdirConfig, load_config
from merkdir.config.loader import DEFAULT_CONFIG_TEMPLATE
from merkdir.merkle import (
    InclusionProof,
    MerkleError,
    MerkleTree,
    locate_leaf,
    verify_inclusion,
    verify_proof,
)
from merkdir.merkle.dot import dot_graph
from merkdir.merkle.proof import sibling_sides
from merkdir.merkle.scanner import ScanResult

app = typer.Typer(
    name="merkdir",
    help="Create Merkle trees of your directories and prove file inclusion.",
)

config_app = typer.Typer(help="Manage merkdir configuration.")
app.add_typer(config_app, name="config")

stderr = Console(stderr=True)

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# Global state
_config: MerkdirConfig | None = None


def _get_config() -> MerkdirConfig:
    if _config is None:
        return load_config()
    return _config


def _setup_logging(level: str) -> None:
    log = logging.getLogger("merkdir")
    log.setLevel(_LOG_LEVELS[level])
    if not any(isinstance(h, RichHandler) for h in log.handlers):
        log.addHandler(RichHandler(console=stderr, show_path=False))


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to merkdir.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)
    _setup_logging(_config.log_level)


def _fail(msg: str, err: Exception) -> None:
    rprint(f"[red]{msg}:[/red] {escape(str(err))}")
    raise typer.Exit(1)


def _read_tree(path: str) -> MerkleTree:
    try:
        return MerkleTree.load(Path(path))
    except (OSError, MerkleError) as e:
        _fail("error reading or decoding file", e)


def _read_proof(path: str) -> InclusionProof:
    try:
        return InclusionProof.load(Path(path))
    except (OSError, MerkleError) as e:
        _fail("error reading or decoding file", e)


def _write_raw(data: bytes) -> None:
    out = typer.get_binary_stream("stdout")
    out.write(data)
    out.flush()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def version() -> None:
    """Get version information."""
    typer.echo(__version__)


@app.command()
def gen(
    directory: Annotated[
        Path,
        typer.Argument(exists=True, file_okay=False, dir_okay=True, help="Directory to hash"),
    ],
    output: Annotated[str, typer.Option("--output", "-o", help="Output tree file")],
) -> None:
    """Generate a Merkle tree."""
    cfg = _get_config()

    progress = Progress(
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        console=stderr,
        disable=not cfg.output.progress,
    )
    task = progress.add_task("hashing", total=None)

    def on_scan(scan: ScanResult) -> None:
        rprint(f"Found {len(scan.files)} files. Starting hashing...")
        progress.update(task, total=scan.total_size)

    rprint("Finding files...")
    try:
        with progress:
            tree = MerkleTree.build(
                directory,
                cfg.scan.ignore_patterns,
                follow_symlinks=cfg.scan.follow_symlinks,
                workers=cfg.hashing.workers,
                chunk_size=cfg.hashing.chunk_size,
                on_scan=on_scan,
                on_read=lambda n: progress.advance(task, n),
            )
    except MerkleError as e:
        _fail("error hashing files", e)

    rprint(f"Root hash: {tree.root_hash.hex()}")
    try:
        tree.save(Path(output))
    except OSError as e:
        _fail("error writing tree", e)


@app.command()
def root(
    tree_file: Annotated[str, typer.Argument(help="Tree file")],
    hex_: Annotated[bool, typer.Option("--hex", help="Get hash as hex")] = False,
) -> None:
    """Get the root hash for a tree."""
    tree = _read_tree(tree_file)
    if hex_:
        typer.echo(tree.root_hash.hex())
    else:
        _write_raw(tree.root_hash)


def _explain_proof(tree: MerkleTree, name: str, proof: InclusionProof) -> None:
    rprint("[bold]== Inclusion proof ==[/bold]")
    rprint(f"Tree size: {proof.tree_size}")
    rprint(f"File {name} is leaf index {proof.leaf_index}")
    rprint(f"Tree root hash: {tree.root_hash.hex()}")
    rprint(f"File nonce: {proof.nonce.hex()}")
    rprint("Operations to calculate the root hash:")
    rprint("  digest = hash(0x00 || nonce || file data)")
    if not proof.proof:
        rprint("  (single-leaf tree: digest is the root hash)")
        return

    table = Table(show_header=True)
    table.add_column("Step", justify="right")
    table.add_column("Operation")
    table.add_column("Sibling hash", style="cyan")
    sides = sibling_sides(proof.leaf_index, proof.tree_size, len(proof.proof))
    for i, (sibling, on_left) in enumerate(zip(proof.proof, sides), 1):
        op = "hash(0x01 || sibling || digest)" if on_left else "hash(0x01 || digest || sibling)"
        table.add_row(str(i), op, sibling.hex())
    rprint(table)


@app.command()
def inclusion(
    tree_file: Annotated[str, typer.Option("--tree", "-t", help="Input tree file")],
    file: Annotated[str, typer.Option("--file", "-f", help="File path as stored in the tree")],
    output: Annotated[
        str | None,
        typer.Option(
            "--output",
            "-o",
            help="Output path for inclusion proof (otherwise text version goes to stdout)",
        ),
    ] = None,
) -> None:
    """Generate an inclusion proof given a tree and file in that tree."""
    tree = _read_tree(tree_file)
    try:
        proof = tree.inclusion_proof(file)
    except MerkleError as e:
        _fail("error calculating proof", e)

    if output:
        try:
            proof.save(Path(output))
        except OSError as e:
            _fail("error writing proof", e)
        return
    _explain_proof(tree, file, proof)


@app.command(name="verify-file")
def verify_file(
    tree_file: Annotated[str, typer.Option("--tree", "-t", help="Input tree file")],
    name: Annotated[str, typer.Option("--name", "-n", help="Name/path of file in Merkle tree")],
) -> None:
    """Check if a file on disk is still part of the Merkle tree."""
    tree = _read_tree(tree_file)
    try:
        ok = tree.verify_file(name)
    except MerkleError as e:
        _fail("error verifying file", e)

    if ok:
        typer.echo("OK: file is still verified by this Merkle tree")
    else:
        typer.echo("NOT OK: file has changed and is not part of the Merkle tree")


@app.command(name="verify-inclusion")
def verify_inclusion_cmd(
    proof_file: Annotated[str, typer.Option("--proof", "-p", help="Inclusion proof file")],
    file: Annotated[str, typer.Option("--file", "-f", help="Path to leaf file")],
    hex_: Annotated[bool, typer.Option("--hex", help="Get hash as hex")] = False,
    expected: Annotated[
        str | None, typer.Option("--hash", help="Hex root hash to compare to")
    ] = None,
) -> None:
    """Get the root hash for a given inclusion proof and file."""
    proof = _read_proof(proof_file)
    given = None
    if expected:
        try:
            given = bytes.fromhex(expected)
        except ValueError as e:
            _fail("failed to decode given hexadecimal hash", e)

    try:
        with open(file, "rb") as f:
            if given is not None:
                ok = verify_inclusion(proof, f, given)
            else:
                root_hash = verify_proof(proof, f)
    except OSError as e:
        _fail("error reading file", e)
    except MerkleError as e:
        _fail("unexpected verification failure", e)

    if given is not None:
        if ok:
            typer.echo("OK: proof and file match given root hash")
        else:
            typer.echo("NOT OK: proof and file don't match given root hash")
        return
    if hex_:
        typer.echo(root_hash.hex())
    else:
        _write_raw(root_hash)


@app.command()
def info(
    tree_file: Annotated[str, typer.Argument(help="Tree file")],
    proof_file: Annotated[
        str | None, typer.Option("--proof", "-p", help="Inclusion proof file")
    ] = None,
) -> None:
    """Get information about a tree, or tree and inclusion proof."""
    tree = _read_tree(tree_file)

    if proof_file:
        proof = _read_proof(proof_file)
        try:
            leaf = locate_leaf(tree.root, proof.tree_size, proof.leaf_index)
        except MerkleError as e:
            _fail("error finding leaf from inclusion proof in tree", e)
        typer.echo(f"File index: {proof.leaf_index}")
        typer.echo(f"File name: {leaf.name}")
        typer.echo(f"Nonce: {proof.nonce.hex()}")
        typer.echo(f"Proof length: {len(proof.proof)} hashes")
        return

    typer.echo(f"Root hash: {tree.root_hash.hex()}")
    typer.echo(f"FS root: {tree.path}")
    typer.echo(f"Num. of files: {tree.size}")
    typer.echo(f"Creation time: {tree.created_at.isoformat()}")


@app.command()
def check(
    tree_file: Annotated[str, typer.Argument(help="Tree file")],
    fail_on_changed: Annotated[
        bool, typer.Option("--fail-on-changed", help="Exit 1 if any file changed or is missing")
    ] = False,
) -> None:
    """Re-hash every file in the tree and report drift."""
    cfg = _get_config()
    tree = _read_tree(tree_file)
    try:
        report = tree.check_drift(chunk_size=cfg.hashing.chunk_size)
    except MerkleError as e:
        _fail("error checking files", e)

    table = Table(title="Drift Check")
    table.add_column("File", style="cyan")
    table.add_column("Status", justify="center")
    for name in sorted(tree.files, key=tree.files.__getitem__):
        if name in report.missing:
            status = "[yellow]missing[/yellow]"
        elif name in report.changed:
            status = "[red]changed[/red]"
        else:
            status = "[green]ok[/green]"
        table.add_row(name, status)
    rprint(table)
    rprint(f"\n[dim]Root hash:[/dim] {tree.root_hash.hex()}")

    if report.clean:
        rprint("\n[green]All files match the tree.[/green]")
    else:
        rprint(
            f"\n[red]{len(report.changed)} changed, {len(report.missing)} missing.[/red]"
        )
        if fail_on_changed:
            raise typer.Exit(code=1)


@app.command()
def graph(
    tree_file: Annotated[str, typer.Argument(help="Tree file")],
) -> None:
    """Print the tree as a graphviz DOT digraph."""
    tree = _read_tree(tree_file)
    dot_graph(tree.root, sys.stdout)


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default merkdir.yaml in current directory."""
    target = Path("merkdir.yaml")
    if target.exists() and not force:
        rprint("[yellow]merkdir.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")
