"""
Tkinter application module for CoachDesk.

This module contains the desktop pitch zone editor: a canvas that forwards
pointer events to ``ZonePitchEditor`` and draws the zones, the drawing preview
and the hover tooltip, plus a modal dialog for zone details.
"""
import logging
import re
import tkinter as tk
from tkinter import ttk, messagebox
from typing import Optional

from ..services import ServiceFactory, ZonePitchEditor, backend_from_env
from ..services.zone_editor import EditorMode
from ..services.zone_geometry import CanvasSize
from ..utils import APP_TITLE, ZONE_COLORS
from ..utils.constants import DEFAULT_PITCH_HEIGHT, DEFAULT_PITCH_WIDTH
from .background_loop import BackgroundLoop

logger = logging.getLogger(__name__)

PITCH_GREEN = "#2E7D32"
PITCH_LINES = "#E8F5E9"
COLOR_NAMES = ["Gold", "Blue", "Green", "Orange", "Purple", "Pink", "Teal", "Red"]

_RGBA = re.compile(r"rgba?\((\d+),\s*(\d+),\s*(\d+)")


def rgba_to_hex(color: Optional[str], default: str = "#EFBF04") -> str:
    """Tk has no alpha channel; drop it and keep the RGB part."""
    if not color:
        return default
    if color.startswith("#"):
        return color
    match = _RGBA.match(color)
    if not match:
        return default
    r, g, b = (int(v) for v in match.groups())
    return f"#{r:02x}{g:02x}{b:02x}"


class ZoneEditDialog(tk.Toplevel):
    """Modal dialog editing the zone held by the editor's modal."""

    def __init__(self, parent: "PitchEditorApp"):
        super().__init__(parent)
        self.app = parent
        self.editor = parent.editor
        self.modal = self.editor.modal
        self.title("Edit Zone")
        self.transient(parent)
        self.resizable(False, False)
        self.protocol("WM_DELETE_WINDOW", self._cancel)
        self._build_ui()
        self.grab_set()

    def _build_ui(self):
        frame = ttk.Frame(self, padding=12)
        frame.pack(fill=tk.BOTH, expand=True)

        ttk.Label(frame, text="Title").grid(row=0, column=0, sticky="w")
        self.title_var = tk.StringVar(value=self.modal.title)
        self.title_var.trace_add("write", lambda *_: self._refresh_buttons())
        ttk.Entry(frame, textvariable=self.title_var, width=40).grid(row=1, column=0, columnspan=3, sticky="we")

        ttk.Label(frame, text="Description").grid(row=2, column=0, sticky="w", pady=(8, 0))
        self.description = tk.Text(frame, width=40, height=4)
        self.description.insert("1.0", self.modal.description)
        self.description.grid(row=3, column=0, columnspan=3, sticky="we")

        ttk.Label(frame, text="Color").grid(row=4, column=0, sticky="w", pady=(8, 0))
        current = ZONE_COLORS.index(self.modal.color) if self.modal.color in ZONE_COLORS else 0
        self.color_var = tk.StringVar(value=COLOR_NAMES[current])
        ttk.Combobox(frame, textvariable=self.color_var, values=COLOR_NAMES,
                     state="readonly").grid(row=5, column=0, sticky="w")

        buttons = ttk.Frame(frame)
        buttons.grid(row=6, column=0, columnspan=3, sticky="e", pady=(12, 0))
        self.delete_button = ttk.Button(buttons, text=self.modal.delete_label, command=self._delete)
        self.delete_button.pack(side=tk.LEFT, padx=4)
        ttk.Button(buttons, text="Cancel", command=self._cancel).pack(side=tk.LEFT, padx=4)
        self.save_button = ttk.Button(buttons, text="Save", command=self._save)
        self.save_button.pack(side=tk.LEFT, padx=4)
        self._refresh_buttons()

    def _refresh_buttons(self):
        self.modal.title = self.title_var.get()
        self.save_button.state(["!disabled"] if self.modal.can_save else ["disabled"])

    def _save(self):
        self.modal.title = self.title_var.get()
        self.modal.description = self.description.get("1.0", tk.END).strip()
        self.modal.set_color(ZONE_COLORS[COLOR_NAMES.index(self.color_var.get())])
        if self.editor.save_modal():
            self._close()

    def _delete(self):
        if self.editor.press_delete():
            self._close()
        else:
            self.delete_button.config(text=self.modal.delete_label)

    def _cancel(self):
        self.editor.cancel_modal()
        self._close()

    def _close(self):
        self.grab_release()
        self.destroy()
        self.app.on_dialog_closed()


class PitchEditorApp(tk.Tk):
    """Main window: pitch canvas, toolbar and status bar."""

    def __init__(self, factory: Optional[ServiceFactory] = None,
                 club_id: Optional[str] = None, coach_id: Optional[str] = None,
                 team_id: Optional[str] = None, read_only: bool = False):
        super().__init__()
        self.title(APP_TITLE)
        self.factory = factory or ServiceFactory(backend=backend_from_env())
        self.methodology = self.factory.create_methodology_service()
        self.runner = BackgroundLoop()
        self.club_id = club_id
        self.coach_id = coach_id
        self.team_id = team_id
        self.dirty = False
        self._dialog: Optional[ZoneEditDialog] = None

        self.editor: ZonePitchEditor = self.factory.create_zone_editor(
            on_zones_change=self._on_zones_change,
            read_only=read_only,
            canvas=CanvasSize(DEFAULT_PITCH_WIDTH, DEFAULT_PITCH_HEIGHT),
        )

        self._build_toolbar()
        self._build_canvas()
        self.status_var = tk.StringVar(value="Click and drag to draw zones. Click a zone to edit it.")
        ttk.Label(self, textvariable=self.status_var, anchor="w").pack(fill=tk.X, padx=8, pady=4)
        self.protocol("WM_DELETE_WINDOW", self.quit_app)

        if self.club_id:
            self.load_zones()

    def _build_toolbar(self):
        bar = ttk.Frame(self, padding=(8, 6))
        bar.pack(fill=tk.X)
        ttk.Button(bar, text="Reload", command=self.load_zones).pack(side=tk.LEFT)
        self.save_button = ttk.Button(bar, text="Save Zones", command=self.save_zones)
        self.save_button.pack(side=tk.LEFT, padx=6)
        self.read_only_var = tk.BooleanVar(value=self.editor.read_only)
        ttk.Checkbutton(bar, text="Read-only", variable=self.read_only_var,
                        command=self._toggle_read_only).pack(side=tk.LEFT, padx=6)

    def _build_canvas(self):
        self.canvas = tk.Canvas(self, width=DEFAULT_PITCH_WIDTH, height=DEFAULT_PITCH_HEIGHT,
                                background=PITCH_GREEN, highlightthickness=0)
        self.canvas.pack(fill=tk.BOTH, expand=True, padx=8)
        self.canvas.bind("<ButtonPress-1>", self._on_press)
        self.canvas.bind("<B1-Motion>", self._on_motion)
        self.canvas.bind("<Motion>", self._on_motion)
        self.canvas.bind("<ButtonRelease-1>", self._on_release)
        self.canvas.bind("<Leave>", self._on_leave)
        self.canvas.bind("<Configure>", self._on_resize)

    # ---------- Events ---------- #

    def _on_press(self, event):
        self.editor.pointer_down(event.x, event.y)
        self.redraw()

    def _on_motion(self, event):
        self.editor.pointer_move(event.x, event.y)
        self.redraw()

    def _on_release(self, event):
        self.editor.pointer_move(event.x, event.y)
        self.editor.pointer_up()
        self._after_gesture()

    def _on_leave(self, _event):
        self.editor.pointer_leave()
        self._after_gesture()

    def _on_resize(self, event):
        if event.width > 0 and event.height > 0:
            self.editor.resize(event.width, event.height)
            self.redraw()

    def _after_gesture(self):
        self.redraw()
        if self.editor.mode is EditorMode.EDITING_MODAL_OPEN and self._dialog is None:
            self._dialog = ZoneEditDialog(self)

    def on_dialog_closed(self):
        self._dialog = None
        self.redraw()

    def _on_zones_change(self, zones):
        self.dirty = True
        self.status_var.set(f"{len(zones)} zone(s), unsaved changes")

    def _toggle_read_only(self):
        self.editor.read_only = self.read_only_var.get()
        self.save_button.state(["disabled"] if self.editor.read_only else ["!disabled"])

    # ---------- Drawing ---------- #

    def redraw(self):
        c = self.canvas
        c.delete("all")
        w, h = self.editor.canvas
        c.create_rectangle(4, 4, w - 4, h - 4, outline=PITCH_LINES, width=2)
        c.create_line(w / 2, 4, w / 2, h - 4, fill=PITCH_LINES, width=2)
        c.create_oval(w / 2 - h / 8, h / 2 - h / 8, w / 2 + h / 8, h / 2 + h / 8,
                      outline=PITCH_LINES, width=2)

        dragged = self.editor.drag_position()
        for zone in self.editor.zones:
            rect = self.editor.zone_pixel_rect(zone)
            if dragged is not None and dragged[0] == zone.id:
                rect = dragged[1]
            color = rgba_to_hex(zone.color)
            outline = "#FFFFFF" if zone.id == self.editor.selected_zone_id else color
            c.create_rectangle(rect.x, rect.y, rect.right, rect.bottom,
                               fill=color, stipple="gray50", outline=outline, width=2)
            c.create_text(rect.x + 6, rect.y + 6, text=zone.title, anchor="nw", fill="#FFFFFF")

        preview = self.editor.preview
        if preview is not None:
            r = preview.rect
            c.create_rectangle(r.x, r.y, r.right, r.bottom, fill=rgba_to_hex(preview.fill),
                               stipple="gray25", outline=preview.stroke, dash=(4, 2), width=2)

        tooltip = self.editor.tooltip
        if tooltip is not None:
            c.create_text(tooltip.x + 12, tooltip.y + 12, text=tooltip.text, anchor="nw",
                          fill="#FFFFFF", width=220)

    # ---------- Persistence ---------- #

    def load_zones(self):
        if not self.club_id:
            messagebox.showinfo(APP_TITLE, "No club selected; zones are kept locally.")
            return
        result = self.runner.run(self.methodology.get_zones(self.club_id, self.team_id))
        if not result.ok:
            self.status_var.set(f"Error loading zones: {result.error}")
            return
        self.editor.load_zones(result.zones)
        self.dirty = False
        self.status_var.set(f"Loaded {len(result.zones)} zone(s)")
        self.redraw()

    def save_zones(self):
        if not self.club_id or not self.coach_id:
            messagebox.showwarning(APP_TITLE, "A club and coach are required to save zones.")
            return
        result = self.runner.run(self.methodology.save_zones(
            self.club_id, self.coach_id, self.editor.zones, self.team_id))
        if not result.ok:
            self.status_var.set(f"Unable to save zones: {result.error}")
            return
        self.dirty = False
        self.status_var.set("Zones saved")

    def quit_app(self):
        if self.dirty and not messagebox.askyesno(APP_TITLE, "Discard unsaved zone changes?"):
            return
        self.runner.stop()
        self.destroy()


def create_tkinter_app(**kwargs) -> PitchEditorApp:
    """
    Create and return the main Tkinter application.

    Returns:
        Configured PitchEditorApp instance
    """
    return PitchEditorApp(**kwargs)


def run_tkinter_app(**kwargs) -> None:
    """Run the Tkinter application."""
    app = create_tkinter_app(**kwargs)
    app.mainloop()


if __name__ == "__main__":
    run_tkinter_app()
