"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import typer

from soundmap.core.batch import load_batch
from soundmap.core.config import DEFAULT_RULES_FILE, Settings, load_settings
from soundmap.core.errors import ReloadError, SoundmapError
from soundmap.core.model import MappingRequest, MappingResult, UsbAddress
from soundmap.core.service import MapperService
from soundmap.core.validation import default_friendly_name

EXIT_PARTIAL = 2

app = typer.Typer(help="Persistent names for USB sound cards via udev rules")


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="Settings YAML file"),
    rules_file: Path | None = typer.Option(None, "--rules-file", help="Rule file to append to"),
    debug: bool = typer.Option(False, "--debug", "-D", help="Enable debug output"),
) -> None:
    try:
        settings = load_settings(config)
    except SoundmapError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    settings = settings.with_overrides(rules_file=rules_file, log_level="DEBUG" if debug else None)
    logging.basicConfig(level=settings.numeric_log_level, format="%(levelname)s: %(message)s")
    ctx.obj = settings


def _build_service(ctx: typer.Context) -> MapperService:
    settings: Settings = ctx.obj if isinstance(ctx.obj, Settings) else Settings()
    return MapperService(settings)


def _require_root(service: MapperService) -> None:
    if service.settings.rules_file == DEFAULT_RULES_FILE and os.geteuid() != 0:
        raise SoundmapError("This command must be run as root. Please use sudo.")


def _print_result(result: MappingResult, *, dry_run: bool) -> None:
    for warning in result.warnings:
        typer.echo(f"Warning: {warning}", err=True)
    if result.identity is not None:
        typer.echo(f"Identity: {result.identity.value}")
    if result.platform_path:
        typer.echo(f"Platform ID path: {result.platform_path}")
    typer.echo(result.record.render().rstrip("\n"))
    if dry_run:
        typer.echo("Dry run: rule file not modified")
    else:
        typer.echo(f"Appended rules for {result.request.friendly_name} to {result.rules_file}")


def _reload(service: MapperService, reload: bool) -> int:
    if not reload:
        typer.echo("Skipped udev reload; run 'udevadm control --reload-rules' to apply.")
        return 0
    try:
        service.reload_rules()
    except ReloadError as exc:
        typer.echo(f"Warning: {exc}", err=True)
        return EXIT_PARTIAL
    typer.echo("Rules reloaded successfully. Replug the device or reboot for the name to apply.")
    return 0


@app.command("devices")
def list_devices(ctx: typer.Context) -> None:
    """List attached USB devices."""
    try:
        service = _build_service(ctx)
        devices = service.list_usb_devices()
        if not devices:
            typer.echo("No USB devices found")
            return
        for position, device in enumerate(devices, start=1):
            typer.echo(
                f"{position:2d}. Bus {device.address.bus:03d} Device {device.address.device:03d}: "
                f"ID {device.vendor_id}:{device.product_id} {device.description}"
            )
    except SoundmapError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("cards")
def list_cards(ctx: typer.Context) -> None:
    """List ALSA sound cards and their USB paths."""
    try:
        service = _build_service(ctx)
        cards = service.list_sound_cards()
        if not cards:
            typer.echo("No sound cards found")
            return
        for card in cards:
            where = f" at {card.usb_path}" if card.usb_path else ""
            typer.echo(f"{card.index}: [{card.label}] {card.driver} - {card.description}{where}")
    except SoundmapError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("rules")
def show_rules(ctx: typer.Context) -> None:
    """Show the current rule file."""
    try:
        service = _build_service(ctx)
        text = service.existing_rules()
        if not text:
            typer.echo(f"No existing rules in {service.settings.rules_file}")
            return
        typer.echo(text.rstrip("\n"))
    except SoundmapError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("detect")
def detect_ports(ctx: typer.Context) -> None:
    """Test USB port detection for every attached device."""
    try:
        service = _build_service(ctx)
        report = service.detect_ports()
    except SoundmapError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    if not report.entries:
        typer.echo("Warning: No USB devices found during test.", err=True)
        raise typer.Exit(code=1)

    for entry in report.entries:
        address = entry.device.address
        if entry.resolution is None or entry.identity is None:
            typer.echo(f"Device on Bus {address.bus} Device {address.device}: Could not determine port path")
            continue
        note = " (synthetic)" if entry.resolution.low_confidence else ""
        typer.echo(
            f"Device on Bus {address.bus} Device {address.device}: "
            f"Port path = {entry.identity.value} via {entry.resolution.tier}{note}"
        )

    typer.echo(
        f"Port detection test results: {len(report.resolved)} of {len(report.entries)} devices mapped successfully."
    )
    if report.outcome == "failure":
        typer.echo("Warning: Port detection test failed. No port paths could be determined.", err=True)
        raise typer.Exit(code=1)
    if report.outcome == "partial":
        typer.echo("Warning: Port detection partially successful. Some devices could not be mapped.", err=True)
        raise typer.Exit(code=EXIT_PARTIAL)
    typer.echo("Port detection test successful! All device ports were mapped.")


@app.command("map")
def map_device(
    ctx: typer.Context,
    vendor: str = typer.Option(..., "--vendor", "-v", help="Vendor ID (4-digit hex)"),
    product: str = typer.Option(..., "--product", "-p", help="Product ID (4-digit hex)"),
    friendly: str = typer.Option(..., "--friendly", "-f", help="Friendly name to assign"),
    name: str | None = typer.Option(None, "--device", "-d", help="Device name for the rule comment"),
    usb_port: str | None = typer.Option(None, "--usb-port", "-u", help="Known USB port path, e.g. usb-3.4"),
    bus: int | None = typer.Option(None, "--bus", help="USB bus number"),
    device: int | None = typer.Option(None, "--dev", help="USB device number"),
    card: int | None = typer.Option(None, "--card", help="ALSA card number"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print rules without writing them"),
    reload: bool = typer.Option(True, "--reload/--no-reload", help="Reload udev rules afterwards"),
) -> None:
    """Resolve one device and append its rules."""
    try:
        if (bus is None) != (device is None):
            raise SoundmapError("--bus and --dev must be given together.")
        service = _build_service(ctx)
        if not dry_run:
            _require_root(service)
        request = MappingRequest(
            vendor_id=vendor,
            product_id=product,
            friendly_name=friendly,
            address=UsbAddress(bus=bus, device=device) if bus is not None and device is not None else None,
            port=usb_port,
            card_index=card,
            card_label=name,
        )
        result = service.map_device(request, commit=not dry_run)
        _print_result(result, dry_run=dry_run)
    except SoundmapError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    if not dry_run:
        code = _reload(service, reload)
        if code:
            raise typer.Exit(code=code)


@app.command("batch")
def map_batch(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="YAML file with a 'devices' list"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Print rules without writing them"),
    reload: bool = typer.Option(True, "--reload/--no-reload", help="Reload udev rules afterwards"),
) -> None:
    """Map every device listed in a batch file; failures do not stop the batch."""
    try:
        service = _build_service(ctx)
        requests = load_batch(path)
        if not dry_run:
            _require_root(service)
        batch = service.map_many(requests, commit=not dry_run)
    except SoundmapError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    for result in batch.results:
        _print_result(result, dry_run=dry_run)
    for failure in batch.failures:
        typer.echo(f"Error: {failure.request.friendly_name}: {failure.error}", err=True)
    typer.echo(f"Mapped {len(batch.results)} of {len(batch.results) + len(batch.failures)} devices")

    code = 0
    if batch.results and not dry_run:
        code = _reload(service, reload)
    if batch.outcome == "failure":
        raise typer.Exit(code=1)
    if batch.outcome == "partial" or code:
        raise typer.Exit(code=EXIT_PARTIAL)


@app.command("interactive")
def interactive(
    ctx: typer.Context,
    reload: bool = typer.Option(True, "--reload/--no-reload", help="Reload udev rules afterwards"),
) -> None:
    """Guided mapping: pick a sound card, its USB device, and a friendly name."""
    try:
        service = _build_service(ctx)
        _require_root(service)

        cards = service.list_sound_cards()
        if not cards:
            raise SoundmapError("No sound cards found.")
        for card in cards:
            typer.echo(f"{card.index}: [{card.label}] {card.description}")
        card_index = typer.prompt("Enter the number of the sound card you want to map", type=int)
        selected = next((c for c in cards if c.index == card_index), None)
        if selected is None:
            raise SoundmapError(f"No sound card found with number {card_index}.")

        devices = service.list_usb_devices()
        if not devices:
            raise SoundmapError("No USB devices found.")
        info = service.card_usb_info(card_index)
        default_choice = None
        for position, usb in enumerate(devices, start=1):
            typer.echo(f"{position:2d}. Bus {usb.address.bus:03d} Device {usb.address.device:03d}: "
                       f"ID {usb.vendor_id}:{usb.product_id} {usb.description}")
            if info.address == usb.address:
                default_choice = position
        choice = typer.prompt(
            "Select the USB device that corresponds to this sound card",
            type=int,
            default=default_choice,
        )
        if not 1 <= choice <= len(devices):
            raise SoundmapError(f"No USB device found at position {choice}.")
        usb = devices[choice - 1]

        friendly = typer.prompt(
            "Friendly name (lowercase letters, numbers, and hyphens)",
            default=default_friendly_name(selected.label) or None,
        )
        request = MappingRequest(
            vendor_id=usb.vendor_id,
            product_id=usb.product_id,
            friendly_name=friendly,
            address=usb.address,
            card_index=card_index,
            card_label=selected.label,
        )
        preview = service.map_device(request, commit=False)
        _print_result(preview, dry_run=True)
        if not typer.confirm(f"Append these rules to {service.settings.rules_file}?", default=True):
            typer.echo("Mapping canceled.")
            raise typer.Exit(code=1)
        result = service.commit(preview)
        typer.echo(f"Appended rules for {result.request.friendly_name} to {result.rules_file}")
    except SoundmapError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    code = _reload(service, reload)
    if code:
        raise typer.Exit(code=code)


def run() -> None:
    app()


if __name__ == "__main__":
    run()
