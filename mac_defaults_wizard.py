#!/usr/bin/env python3
"""
Mac Defaults Wizard: post-install setup for a developer Mac

A terminal wizard that walks through:
  1. Git identity + default branch
  2. SSH key generation
  3. System, Finder & quality-of-life defaults
  4. Default browser + keyboard shortcut
  5. Dock contents
  6. Restarting the UI so it all shows up

Every step is safe to re-run. Assumes git, dockutil and duti are already
installed (e.g. from a Brewfile).

Usage:
    python3 mac_defaults_wizard.py
"""

import math
import platform
import subprocess
import sys
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from rich import box
from rich.console import Console
from rich.padding import Padding
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

console = Console()


# ─── Paths & Constants ───────────────────────────────────────────────────────
SSH_DIR         = Path.home() / ".ssh"
SSH_KEY         = SSH_DIR / "id_ed25519"
SSH_PUB         = SSH_DIR / "id_ed25519.pub"
SCREENSHOTS_DIR = Path.home() / "Screenshots"
DOCK_FOLDER     = Path.home() / "Development"

DEFAULT_BRANCH       = "main"
SUDO_REFRESH_SECONDS = 60

REQUIRED_TOOLS = ["git"]
OPTIONAL_TOOLS = ["ssh-keygen", "duti", "dockutil"]

BROWSER_BUNDLE_ID = "com.brave.Browser"
BROWSER_HANDLES   = ["http", "https", "html"]

# Edit as needed. Dock order follows this list.
DOCK_APPS = [
    Path("/Applications/Brave Browser.app"),
    Path("/Applications/Visual Studio Code.app"),
    Path("/Applications/Warp.app"),
    Path("/Applications/Fork.app"),
    Path("/Applications/Notion.app"),
]

RESTART_PROCESSES = [
    "Finder",
    "Dock",
    "SystemUIServer",
    "TextEdit",
    "Activity Monitor",
]


# ─── Data Types ──────────────────────────────────────────────────────────────
class Status(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED  = "failed"


@dataclass(frozen=True)
class StepResult:
    name: str
    status: Status
    detail: str = ""


@dataclass(frozen=True)
class Setting:
    """One `defaults write` against a preference domain."""
    domain: str
    key: str
    type: str
    value: object
    current_host: bool = False


@dataclass(frozen=True)
class SymbolicHotkey:
    """An entry in com.apple.symbolichotkeys AppleSymbolicHotKeys."""
    hotkey_id: int
    parameters: tuple
    enabled: bool = True
    kind: str = "standard"

    def to_plist(self):
        params = ", ".join(str(p) for p in self.parameters)
        return (
            f"{{enabled = {int(self.enabled)}; value = {{ parameters = ({params}); "
            f"type = '{self.kind}'; }}; }}"
        )


PREFERENCES = [
    # Finder: path bar, all extensions, folders first
    Setting("com.apple.finder", "ShowPathbar", "bool", True),
    Setting("NSGlobalDomain", "AppleShowAllExtensions", "bool", True),
    Setting("com.apple.screencapture", "location", "string", str(SCREENSHOTS_DIR)),
    # Smart quotes and dashes break code snippets
    Setting("NSGlobalDomain", "NSAutomaticQuoteSubstitutionEnabled", "bool", False),
    Setting("NSGlobalDomain", "NSAutomaticDashSubstitutionEnabled", "bool", False),
    # TextEdit opens in plain text
    Setting("com.apple.TextEdit", "RichText", "int", 0),
    # Activity Monitor: main window, CPU in Dock icon, all processes
    Setting("com.apple.ActivityMonitor", "OpenMainWindow", "bool", True),
    Setting("com.apple.ActivityMonitor", "IconType", "int", 5),
    Setting("com.apple.ActivityMonitor", "ShowCategory", "int", 0),
    Setting("com.apple.finder", "_FXSortFoldersFirst", "bool", True),
    # Tap to click
    Setting("com.apple.AppleMultitouchTrackpad", "Clicking", "bool", True),
    Setting("NSGlobalDomain", "com.apple.mouse.tapBehavior", "int", 1, current_host=True),
    Setting("NSGlobalDomain", "AppleAccentColor", "int", -2),
    # Menu bar clock
    Setting("com.apple.menuextra.clock", "FlashDateSeparators", "bool", True),
    Setting("com.apple.menuextra.clock", "ShowDate", "int", 2),
    # Dock & Mission Control
    Setting("com.apple.dock", "mru-spaces", "bool", False),
    Setting("com.apple.dock", "show-recents", "bool", False),
    Setting("com.apple.dock", "tilesize", "int", 64),
    Setting("com.apple.dock", "magnification", "bool", True),
    Setting("com.apple.dock", "largesize", "int", 32),
    Setting("com.apple.dock", "autohide", "bool", True),
]

# Hotkey IDs and their parameter tuples are owned by macOS and undocumented.
# These were captured from a configured machine; re-capture them with
# `defaults read com.apple.symbolichotkeys AppleSymbolicHotKeys` after a
# macOS upgrade instead of editing the numbers by hand.
SYMBOLIC_HOTKEY_160 = SymbolicHotkey(160, (100, 2, 1048576))


# ─── Shell Helpers ───────────────────────────────────────────────────────────
def sh(cmd):
    """Run a shell command, return stdout (empty string on failure)."""
    try:
        r = subprocess.run(cmd, shell=True, capture_output=True, text=True)
        return r.stdout.strip()
    except Exception:
        return ""


def sh_ok(cmd):
    """Return True if a shell command exits 0."""
    return subprocess.run(
        cmd, shell=True, capture_output=True, text=True
    ).returncode == 0


def cmd_exists(name):
    """Check if a command exists on PATH."""
    return sh_ok(f"which {name}")


def run(argv, **kwargs):
    """Run a command without a shell. A missing binary comes back as exit 127."""
    try:
        return subprocess.run(argv, capture_output=True, text=True, **kwargs)
    except FileNotFoundError as e:
        return subprocess.CompletedProcess(argv, 127, "", str(e))


def first_error_line(proc):
    text = (proc.stderr or proc.stdout or "").strip()
    if not text:
        return f"exit code {proc.returncode}"
    return text.splitlines()[0][:120]


def result_from(name, proc, ok_detail=""):
    """Turn a finished command into a StepResult, echoing it to the console."""
    if proc.returncode == 0:
        ok(name)
        return StepResult(name, Status.SUCCESS, ok_detail)
    detail = first_error_line(proc)
    fail(name)
    dim(detail)
    return StepResult(name, Status.FAILED, detail)


def make_dir(name, path, **kwargs):
    """Create a directory like `mkdir -p`. Returns a failed StepResult on error, else None."""
    try:
        path.mkdir(exist_ok=True, **kwargs)
    except OSError as e:
        fail(f"{name}: could not create {path}")
        dim(str(e))
        return StepResult(name, Status.FAILED, str(e))
    return None


def reattach_tty():
    # When piped (curl | python3), stdin is the script itself and is exhausted
    # before any prompt runs. Reopen it from the real terminal.
    if sys.stdin.isatty():
        return
    try:
        sys.stdin = open("/dev/tty", "r")
    except OSError:
        pass  # no controlling terminal (CI, pytest)


# ─── Output Helpers ──────────────────────────────────────────────────────────
def phase(num, title, subtitle=""):
    text = f"[bold cyan]STEP {num}[/]  [bold white]{title}[/]"
    if subtitle:
        text += f"\n[dim]{subtitle}[/]"
    console.print()
    console.print(Panel(text, box=box.ROUNDED, border_style="cyan", padding=(0, 2)))


def ok(msg):
    console.print(f"  [green]\u2713[/] {msg}")


def info(msg):
    console.print(f"  [cyan]\u203a[/] {msg}")


def warn(msg):
    console.print(f"  [yellow]![/] {msg}")


def fail(msg):
    console.print(f"  [red]\u2717[/] {msg}")


def dim(msg):
    console.print(f"  [dim]{msg}[/]")


# ─── Preference Store ────────────────────────────────────────────────────────
class DefaultsStore:
    """Reads and writes the macOS preference database through defaults(1).

    Every preference change in the wizard goes through one of these so the
    whole thing can be swapped for an in-memory store in tests.
    """

    def _defaults(self, current_host):
        return ["defaults", "-currentHost"] if current_host else ["defaults"]

    def read(self, setting):
        """Return the raw value printed by `defaults read`, or None if unset."""
        r = run(self._defaults(setting.current_host) + ["read", setting.domain, setting.key])
        if r.returncode != 0:
            return None
        return r.stdout.strip()

    def write(self, setting):
        return run(
            self._defaults(setting.current_host)
            + ["write", setting.domain, setting.key]
            + format_write_value(setting.value, setting.type)
        )

    def dict_add(self, domain, key, entry_key, plist):
        return run(["defaults", "write", domain, key, "-dict-add", str(entry_key), plist])


def format_write_value(value, type_):
    if type_ == "bool":
        return ["-bool", "true" if value else "false"]
    if type_ == "int":
        return ["-int", str(int(value))]
    if type_ == "float":
        return ["-float", str(value)]
    return ["-string", str(value)]


def parse_default_value(raw, type_):
    raw = raw.strip()
    if type_ == "bool":
        if raw in {"1", "true", "YES"}:
            return True
        if raw in {"0", "false", "NO"}:
            return False
        raise ValueError(f"not a bool: {raw!r}")
    if type_ == "int":
        return int(raw)
    if type_ == "float":
        return float(raw)
    return raw


def values_equal(current, wanted, type_):
    if type_ == "bool":
        return bool(current) == bool(wanted)
    if type_ == "float":
        try:
            return math.isclose(float(current), float(wanted), rel_tol=1e-9)
        except (TypeError, ValueError):
            return False
    return current == wanted


def setting_label(setting):
    return f"{setting.domain} {setting.key}"


def apply_setting(store, setting):
    """Write one setting unless the store already holds the wanted value."""
    name = setting_label(setting)
    raw = store.read(setting)
    if raw is not None:
        try:
            current = parse_default_value(raw, setting.type)
        except ValueError:
            current = None  # stored under a different type; overwrite it
        if current is not None and values_equal(current, setting.value, setting.type):
            dim(f"{name} already {setting.value!r}")
            return StepResult(name, Status.SKIPPED, "already set")

    return result_from(name, store.write(setting), f"= {setting.value!r}")


def apply_hotkey(store, hotkey):
    return result_from(
        f"Symbolic hotkey {hotkey.hotkey_id}",
        store.dict_add(
            "com.apple.symbolichotkeys", "AppleSymbolicHotKeys",
            hotkey.hotkey_id, hotkey.to_plist(),
        ),
    )


# ═════════════════════════════════════════════════════════════════════════════
BANNER = r"""
  __  __               ____        __             _ _
 |  \/  | __ _  ___   |  _ \  ___ / _| __ _ _   _| | |_ ___
 | |\/| |/ _` |/ __|  | | | |/ _ \ |_ / _` | | | | | __/ __|
 | |  | | (_| | (__   | |_| |  __/  _| (_| | |_| | | |_\__ \
 |_|  |_|\__,_|\___|  |____/ \___|_|  \__,_|\__,_|_|\__|___/
                          Wizard
"""


# ═════════════════════════════════════════════════════════════════════════════
#  STEP 0: Welcome
# ═════════════════════════════════════════════════════════════════════════════
def welcome():
    console.clear()
    console.print(Panel(
        f"[bold bright_cyan]{BANNER}[/]\n"
        "  [white]Post-install setup for a developer Mac[/]\n",
        box=box.DOUBLE, border_style="bright_blue", padding=(0, 2),
    ))

    console.print("  This wizard configures your Mac for development:\n")
    console.print("  [white]1.[/] Git identity and an SSH key")
    console.print("  [white]2.[/] Finder, trackpad, clock and Dock defaults")
    console.print("  [white]3.[/] Default browser and a keyboard shortcut")
    console.print("  [white]4.[/] A clean Dock with your apps")
    console.print()
    dim("Run it after your Brewfile. You'll be asked for your password once.")
    dim("Every step is safe to re-run.")
    console.print()

    if not Confirm.ask("  [bold]Ready?[/]", default=True):
        console.print("\n  No worries. Run again whenever.\n")
        sys.exit(0)


# ═════════════════════════════════════════════════════════════════════════════
#  STEP 1: Preflight
# ═════════════════════════════════════════════════════════════════════════════
def preflight():
    phase(1, "Preflight Checks", "Making sure your system has what we need")

    if platform.system() != "Darwin":
        fail(f"This wizard targets macOS. Detected: {platform.system()}")
        sys.exit(1)
    ok("macOS detected")

    for tool in REQUIRED_TOOLS:
        if not cmd_exists(tool):
            fail(f"{tool} not found. Run: xcode-select --install")
            sys.exit(1)
        ok(f"{tool} installed")

    missing = [tool for tool in OPTIONAL_TOOLS if not cmd_exists(tool)]
    for tool in OPTIONAL_TOOLS:
        if tool in missing:
            warn(f"{tool} not found. Steps that need it will fail.")
        else:
            ok(f"{tool} installed")
    brewable = [t for t in missing if t != "ssh-keygen"]
    if brewable:
        dim("Install with: brew install " + " ".join(brewable))
    return missing


def request_sudo():
    """Ask for the admin password once, up front."""
    info("Asking for your administrator password...")
    try:
        r = subprocess.run(["sudo", "-v"])
    except FileNotFoundError as e:
        fail("sudo not found")
        return StepResult("Administrator session", Status.FAILED, str(e))
    if r.returncode != 0:
        fail("Could not get administrator rights")
        return StepResult("Administrator session", Status.FAILED, "sudo -v was denied")
    ok("Administrator session active")
    return StepResult("Administrator session", Status.SUCCESS)


def keep_sudo_alive(interval=SUDO_REFRESH_SECONDS):
    """Refresh the sudo timestamp in the background until the wizard exits.

    The thread is a daemon, so it goes away with the process. Setting the
    returned event stops it early.
    """
    stop = threading.Event()

    def refresh():
        while not stop.wait(interval):
            subprocess.run(["sudo", "-n", "true"], capture_output=True)

    threading.Thread(target=refresh, name="sudo-keepalive", daemon=True).start()
    return stop


# ═════════════════════════════════════════════════════════════════════════════
#  STEP 2: Git
# ═════════════════════════════════════════════════════════════════════════════
def git_get(key):
    return sh(f"git config --global {key}")


def ensure_git_value(key, label, question):
    """Prompt for a global git value only when it's empty."""
    current = git_get(key)
    if current:
        ok(f"Git {label} is already set to: {current}")
        return StepResult(f"Git {key}", Status.SKIPPED, current)

    info(f"Git {label} not set. Let's configure it.")
    answer = Prompt.ask(f"  [bold]{question}[/]", default="", show_default=False)
    return result_from(
        f"Git {key}",
        run(["git", "config", "--global", key, answer]),
        answer,
    )


def configure_git():
    phase(2, "Git", "Default branch and commit identity")

    results = [
        result_from(
            "Git init.defaultBranch",
            run(["git", "config", "--global", "init.defaultBranch", DEFAULT_BRANCH]),
            DEFAULT_BRANCH,
        ),
        ensure_git_value("user.name", "user name", "Enter your full name for Git commits"),
        ensure_git_value("user.email", "user email", "Enter your email for Git commits"),
    ]
    return results


# ═════════════════════════════════════════════════════════════════════════════
#  STEP 3: SSH
# ═════════════════════════════════════════════════════════════════════════════
def ensure_ssh_key(email):
    phase(3, "SSH Key", "So GitHub and GitLab know your machine")

    failed = make_dir("SSH key", SSH_DIR, mode=0o700)
    if failed:
        return failed

    if SSH_KEY.exists():
        ok(f"SSH key already exists: {SSH_KEY}. Skipping generation.")
        return StepResult("SSH key", Status.SKIPPED, str(SSH_KEY))

    info("SSH key not found. Generating a new ed25519 key...")
    r = run(["ssh-keygen", "-t", "ed25519", "-C", email, "-f", str(SSH_KEY), "-N", ""])
    if not SSH_KEY.exists():
        fail("Key generation failed")
        detail = first_error_line(r)
        dim(detail)
        return StepResult("SSH key", Status.FAILED, detail)
    ok("SSH key generated")
    return StepResult("SSH key", Status.SUCCESS, str(SSH_KEY))


def show_public_key():
    if not SSH_PUB.exists():
        warn(f"Public key not found at {SSH_PUB}")
        return

    pub_text = SSH_PUB.read_text().strip()
    copied = run(["pbcopy"], input=pub_text).returncode == 0

    console.print()
    console.print(Panel(
        f"{pub_text}\n\n"
        + ("[bold green]Copied to clipboard.[/] " if copied else "")
        + "Paste it into GitHub/GitLab under SSH keys.",
        title="[bold yellow] Your public SSH key [/]",
        border_style="yellow",
        box=box.HEAVY,
        padding=(1, 2),
    ))


# ═════════════════════════════════════════════════════════════════════════════
#  STEP 4: System & Quality-of-Life Settings
# ═════════════════════════════════════════════════════════════════════════════
def set_dark_mode():
    return result_from(
        "Dark mode",
        run([
            "osascript", "-e",
            'tell app "System Events" to tell appearance preferences to set dark mode to true',
        ]),
    )


def apply_preferences(store, settings=None):
    phase(4, "System, Finder & Quality-of-Life Tweaks",
          "Takes effect once the owning apps restart")

    results = []
    failed = make_dir("Screenshots folder", SCREENSHOTS_DIR, parents=True)
    if failed:
        results.append(failed)

    settings = PREFERENCES if settings is None else settings
    results += [apply_setting(store, s) for s in settings]
    results.append(set_dark_mode())
    return results


# ═════════════════════════════════════════════════════════════════════════════
#  STEP 5: Default Applications & Keyboard Shortcuts
# ═════════════════════════════════════════════════════════════════════════════
def set_default_apps(bundle_id=BROWSER_BUNDLE_ID, handles=None):
    info(f"Setting {bundle_id} as default for web protocols...")
    return [
        result_from(f"Default for {target}", run(["duti", "-s", bundle_id, target]), bundle_id)
        for target in (BROWSER_HANDLES if handles is None else handles)
    ]


def configure_handlers(store):
    phase(5, "Default Applications & Keyboard Shortcuts")
    results = set_default_apps()
    results.append(apply_hotkey(store, SYMBOLIC_HOTKEY_160))
    return results


# ═════════════════════════════════════════════════════════════════════════════
#  STEP 6: Dock
# ═════════════════════════════════════════════════════════════════════════════
def configure_dock(apps=None, folder=None):
    """Rebuild the Dock from scratch: clear it, then add apps and the folder."""
    phase(6, "Dock", "Cleared and rebuilt from your app list")

    apps = DOCK_APPS if apps is None else apps
    folder = DOCK_FOLDER if folder is None else folder

    results = [
        result_from("Clear Dock", run(["dockutil", "--remove", "all", "--no-restart"]))
    ]

    for app in apps:
        if not Path(app).is_dir():
            warn(f"Application not found at '{app}'. It may not be installed.")
            results.append(StepResult(f"Dock: {Path(app).stem}", Status.SKIPPED, "not installed"))
            continue
        results.append(result_from(
            f"Dock: {Path(app).stem}",
            run(["dockutil", "--add", str(app), "--no-restart"]),
            str(app),
        ))

    name = f"Dock: {Path(folder).name} folder"
    failed = make_dir(name, Path(folder), parents=True)
    if failed:
        results.append(failed)
        return results
    results.append(result_from(
        name,
        run([
            "dockutil", "--add", str(folder),
            "--view", "grid", "--display", "folder", "--no-restart",
        ]),
        "grid",
    ))
    return results


# ═════════════════════════════════════════════════════════════════════════════
#  STEP 7: Finalize
# ═════════════════════════════════════════════════════════════════════════════
def restart_ui(processes=None):
    phase(7, "Finalizing Setup", "Restarting apps so the changes show up")

    results = []
    processes = RESTART_PROCESSES if processes is None else processes
    for name in processes:
        r = run(["killall", name])
        if r.returncode == 0:
            ok(f"Restarted {name}")
            results.append(StepResult(f"Restart {name}", Status.SUCCESS))
        elif r.returncode == 127:
            results.append(result_from(f"Restart {name}", r))
        else:
            dim(f"{name} wasn't running")
            results.append(StepResult(f"Restart {name}", Status.SKIPPED, "not running"))
    return results


STATUS_ICONS = {
    Status.SUCCESS: "[green]\u2713[/]",
    Status.SKIPPED: "[dim]\u2013[/]",
    Status.FAILED:  "[red]\u2717[/]",
}


def summary(results):
    """Print every step result. Returns True when nothing failed."""
    console.print()
    info("What changed:")
    console.print()

    table = Table(box=box.ROUNDED, border_style="dim", padding=(0, 2))
    table.add_column("Step", style="white")
    table.add_column("", width=3)
    table.add_column("Detail", style="dim")
    for r in results:
        table.add_row(r.name, STATUS_ICONS[r.status], r.detail)
    console.print(Padding(table, (0, 4)))

    counts = {s: sum(1 for r in results if r.status == s) for s in Status}
    dim(
        f"{counts[Status.SUCCESS]} applied, {counts[Status.SKIPPED]} skipped, "
        f"{counts[Status.FAILED]} failed"
    )
    return counts[Status.FAILED] == 0


FONT_TIP = (
    "[dim]Your Brewfile installed developer fonts. Set 'JetBrains Mono Nerd Font'\n"
    "or 'Hack Nerd Font' in your terminal and code editor.[/]"
)


def done_summary(all_good):
    console.print()
    if all_good:
        console.print(Panel(
            "[bold green]Your Mac is configured.[/]\n\n"
            "Some changes may need a logout or restart to take full effect.\n\n"
            + FONT_TIP,
            title="[bold green] Setup Complete [/]",
            border_style="green",
            box=box.DOUBLE,
            padding=(1, 2),
        ))
    else:
        console.print(Panel(
            "[bold yellow]Almost there.[/]\n\n"
            "Some steps failed; see the table above. Fix what's missing\n"
            "(usually a tool not installed yet) and re-run the wizard.\n"
            "Steps that already worked will be skipped.\n\n"
            + FONT_TIP,
            title="[bold yellow] Needs Attention [/]",
            border_style="yellow",
            box=box.DOUBLE,
            padding=(1, 2),
        ))
    console.print()


# ═════════════════════════════════════════════════════════════════════════════
#  Main
# ═════════════════════════════════════════════════════════════════════════════
def main():
    reattach_tty()
    try:
        welcome()
        preflight()

        results = [request_sudo()]
        if results[0].status == Status.SUCCESS:
            keep_sudo_alive()

        results += configure_git()
        results.append(ensure_ssh_key(git_get("user.email")))
        show_public_key()

        store = DefaultsStore()
        results += apply_preferences(store)
        results += configure_handlers(store)
        results += configure_dock()
        results += restart_ui()

        all_good = summary(results)
        done_summary(all_good)
        sys.exit(0 if all_good else 1)

    except KeyboardInterrupt:
        console.print("\n\n  [dim]Cancelled. Run again whenever you're ready.[/]\n")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n  [red]Something broke: {e}[/]")
        console.print("  [dim]Re-run the wizard. It's safe to retry.[/]\n")
        raise


if __name__ == "__main__":
    main()
