import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from ChordDispatch.models import WindowContext
from ChordDispatch.window_detection import (HyprlandDetection, KdotoolDetection,
                                            NiriDetection, SimulationDetection,
                                            SwayDetection, WindowQueryError,
                                            XdotoolDetection,
                                            build_detection_methods,
                                            detect_compositor,
                                            resolve_focused_context)


def completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def undecodable():
    return UnicodeDecodeError("utf-8", b"caf\xe9", 3, 4, "invalid continuation byte")


class TestNiriDetection:
    @pytest.fixture
    def detector(self):
        return NiriDetection()

    @patch('subprocess.run')
    def test_detect_focused_window(self, mock_run, detector):
        mock_run.return_value = completed(json.dumps([
            {"id": 1, "title": "Mozilla Firefox", "app_id": "firefox", "is_focused": False},
            {"id": 2, "title": "~", "app_id": "org.wezfurlong.wezterm", "is_focused": True},
        ]))

        context = detector.detect()

        assert context == WindowContext("org.wezfurlong.wezterm", "~", "niri")
        assert mock_run.call_args[0][0] == ["niri", "msg", "--json", "windows"]

    @patch('subprocess.run')
    def test_no_focused_window(self, mock_run, detector):
        mock_run.return_value = completed(json.dumps([
            {"id": 1, "title": "x", "app_id": "firefox", "is_focused": False},
        ]))
        assert detector.detect() is None

    @patch('subprocess.run')
    def test_null_app_id_gives_empty_identifier(self, mock_run, detector):
        mock_run.return_value = completed(json.dumps([
            {"id": 3, "title": None, "app_id": None, "is_focused": True},
        ]))
        context = detector.detect()
        assert context is not None
        assert context.app_id == ""
        assert not context.is_valid()

    @patch('subprocess.run')
    def test_malformed_output(self, mock_run, detector):
        mock_run.return_value = completed("Error: not running under niri")
        with pytest.raises(WindowQueryError):
            detector.detect()

    @patch('subprocess.run')
    def test_unexpected_json_shape(self, mock_run, detector):
        mock_run.return_value = completed('{"Err": "boom"}')
        with pytest.raises(WindowQueryError):
            detector.detect()

    @patch('subprocess.run')
    def test_tool_missing(self, mock_run, detector):
        mock_run.side_effect = FileNotFoundError("niri")
        with pytest.raises(WindowQueryError, match="not found"):
            detector.detect()

    @patch('subprocess.run')
    def test_timeout(self, mock_run, detector):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="niri", timeout=1)
        with pytest.raises(WindowQueryError, match="timed out"):
            detector.detect()

    @patch('subprocess.run')
    def test_non_zero_exit(self, mock_run, detector):
        mock_run.return_value = completed("", returncode=1, stderr="socket not found")
        with pytest.raises(WindowQueryError, match="returned code 1"):
            detector.detect()

    @patch('subprocess.run')
    def test_non_string_app_id(self, mock_run, detector):
        mock_run.return_value = completed(json.dumps([
            {"id": 4, "title": "x", "app_id": 42, "is_focused": True},
        ]))
        with pytest.raises(WindowQueryError, match="non-string 'app_id'"):
            detector.detect()

    @patch('subprocess.run')
    def test_non_string_title(self, mock_run, detector):
        mock_run.return_value = completed(json.dumps([
            {"id": 4, "title": ["x"], "app_id": "kitty", "is_focused": True},
        ]))
        with pytest.raises(WindowQueryError):
            detector.detect()

    @patch('subprocess.run')
    def test_undecodable_output(self, mock_run, detector):
        mock_run.side_effect = undecodable()
        with pytest.raises(WindowQueryError, match="undecodable output"):
            detector.detect()


class TestHyprlandDetection:
    @patch('subprocess.run')
    def test_detect(self, mock_run):
        mock_run.return_value = completed(json.dumps({"class": "kitty", "title": "vim"}))
        assert HyprlandDetection().detect() == WindowContext("kitty", "vim", "hyprland")
        assert mock_run.call_args[0][0] == ["hyprctl", "-j", "activewindow"]

    @patch('subprocess.run')
    def test_empty_object_means_no_focus(self, mock_run):
        mock_run.return_value = completed("{}")
        assert HyprlandDetection().detect() is None

    @patch('subprocess.run')
    def test_list_is_malformed(self, mock_run):
        mock_run.return_value = completed("[]")
        with pytest.raises(WindowQueryError):
            HyprlandDetection().detect()

    @patch('subprocess.run')
    def test_non_string_class(self, mock_run):
        mock_run.return_value = completed(json.dumps({"class": ["kitty"], "title": "vim"}))
        with pytest.raises(WindowQueryError, match="non-string 'class'"):
            HyprlandDetection().detect()


class TestSwayDetection:
    def tree(self, focused_node):
        return {
            "type": "root", "focused": False, "nodes": [
                {"type": "output", "focused": False, "nodes": [
                    {"type": "workspace", "focused": False, "nodes": [
                        {"type": "con", "focused": False, "app_id": "firefox", "name": "Firefox", "nodes": []},
                    ], "floating_nodes": [focused_node]},
                ]},
            ],
        }

    @patch('subprocess.run')
    def test_detect_wayland_window(self, mock_run):
        node = {"type": "floating_con", "focused": True, "app_id": "foot", "name": "foot", "nodes": []}
        mock_run.return_value = completed(json.dumps(self.tree(node)))
        assert SwayDetection().detect() == WindowContext("foot", "foot", "sway")

    @patch('subprocess.run')
    def test_detect_xwayland_window(self, mock_run):
        node = {"type": "con", "focused": True, "app_id": None, "name": "xterm",
                "window_properties": {"class": "XTerm"}, "nodes": []}
        mock_run.return_value = completed(json.dumps(self.tree(node)))
        assert SwayDetection().detect().app_id == "XTerm"

    @patch('subprocess.run')
    def test_focused_workspace_means_no_window(self, mock_run):
        tree = {"type": "root", "focused": False, "nodes": [
            {"type": "workspace", "focused": True, "nodes": []},
        ]}
        mock_run.return_value = completed(json.dumps(tree))
        assert SwayDetection().detect() is None

    @patch('subprocess.run')
    def test_non_dict_nodes_skipped(self, mock_run):
        node = {"type": "con", "focused": True, "app_id": "foot", "name": "foot", "nodes": [None, 7]}
        tree = self.tree(node)
        tree["nodes"].insert(0, "garbage")
        tree["floating_nodes"] = "garbage"
        mock_run.return_value = completed(json.dumps(tree))
        assert SwayDetection().detect() == WindowContext("foot", "foot", "sway")

    @patch('subprocess.run')
    def test_non_string_class(self, mock_run):
        node = {"type": "con", "focused": True, "app_id": None, "name": "xterm",
                "window_properties": {"class": 3}, "nodes": []}
        mock_run.return_value = completed(json.dumps(self.tree(node)))
        with pytest.raises(WindowQueryError):
            SwayDetection().detect()

    @patch('subprocess.run')
    def test_malformed_window_properties(self, mock_run):
        node = {"type": "con", "focused": True, "app_id": None, "name": "xterm",
                "window_properties": "XTerm", "nodes": []}
        mock_run.return_value = completed(json.dumps(self.tree(node)))
        with pytest.raises(WindowQueryError, match="window_properties"):
            SwayDetection().detect()


class TestXdoDetection:
    @pytest.mark.parametrize("cls,binary", [(KdotoolDetection, "kdotool"), (XdotoolDetection, "xdotool")])
    @patch('subprocess.run')
    def test_detect(self, mock_run, cls, binary):
        def run_side_effect(cmd, **kwargs):
            if cmd[1] == "getactivewindow":
                return completed("12345\n")
            if cmd[1] == "getwindowclassname":
                return completed("org.kde.konsole\n")
            return completed("~ : bash\n")

        mock_run.side_effect = run_side_effect

        context = cls().detect()

        assert context == WindowContext("org.kde.konsole", "~ : bash", binary)
        mock_run.assert_any_call([binary, "getwindowclassname", "12345"],
                                 capture_output=True, text=True, timeout=1.0, check=False)

    @patch('subprocess.run')
    def test_title_failure_is_not_fatal(self, mock_run):
        mock_run.side_effect = [completed("1\n"), completed("kitty\n"), completed("", returncode=1)]
        assert XdotoolDetection().detect() == WindowContext("kitty", "", "xdotool")

    @patch('subprocess.run')
    def test_undecodable_title_is_not_fatal(self, mock_run):
        mock_run.side_effect = [completed("1\n"), completed("firefox\n"), undecodable()]
        assert XdotoolDetection().detect() == WindowContext("firefox", "", "xdotool")

    @patch('subprocess.run')
    def test_undecodable_class(self, mock_run):
        mock_run.side_effect = [completed("1\n"), undecodable()]
        with pytest.raises(WindowQueryError, match="undecodable output"):
            XdotoolDetection().detect()

    @patch('subprocess.run')
    def test_no_active_window(self, mock_run):
        mock_run.return_value = completed("", returncode=1)
        with pytest.raises(WindowQueryError):
            XdotoolDetection().detect()


class TestSimulationDetection:
    def test_app_id_only(self, simulate_window):
        path = simulate_window("org.wezfurlong.wezterm")
        assert SimulationDetection(path).detect() == WindowContext("org.wezfurlong.wezterm", "", "simulation")

    def test_title_and_app_id(self, simulate_window):
        path = simulate_window("New Tab - Firefox|firefox")
        assert SimulationDetection(path).detect() == WindowContext("firefox", "New Tab - Firefox", "simulation")

    def test_empty_file_means_no_focus(self, simulate_window):
        path = simulate_window("")
        assert SimulationDetection(path).detect() is None

    def test_missing_file_unavailable(self, tmp_path):
        detector = SimulationDetection(str(tmp_path / "missing"))
        assert not detector.is_available()
        with pytest.raises(WindowQueryError):
            detector.detect()

    def test_binary_file(self, tmp_path):
        path = tmp_path / "fake_window"
        path.write_bytes(b"\xff\xfe\x00kitty")
        with pytest.raises(WindowQueryError, match="simulation file"):
            SimulationDetection(str(path)).detect()

    def test_unreadable_path(self, tmp_path):
        with pytest.raises(WindowQueryError, match="simulation file"):
            SimulationDetection(str(tmp_path)).detect()


class TestDetectCompositor:
    def test_niri_hint_first(self):
        order = detect_compositor({"NIRI_SOCKET": "/run/user/1000/niri.sock", "WAYLAND_DISPLAY": "wayland-1"})
        assert order == ["niri", "hyprland", "sway", "kdotool", "xdotool"]

    def test_hyprland_hint(self):
        order = detect_compositor({"XDG_CURRENT_DESKTOP": "Hyprland"})
        assert order[0] == "hyprland"
        assert sorted(order) == sorted(["niri", "hyprland", "sway", "kdotool", "xdotool"])

    def test_sway_and_kde_hints(self):
        assert detect_compositor({"SWAYSOCK": "/run/sway.sock"})[0] == "sway"
        assert detect_compositor({"XDG_CURRENT_DESKTOP": "KDE"})[0] == "kdotool"

    def test_x11_session(self):
        assert detect_compositor({"DISPLAY": ":0"})[0] == "xdotool"

    def test_no_hints(self):
        assert detect_compositor({}) == ["niri", "hyprland", "sway", "kdotool", "xdotool"]


class TestBuildDetectionMethods:
    def test_explicit_order(self):
        methods = build_detection_methods(["hyprland", "xdotool"], timeout=0.5, environ={})
        assert [m.name for m in methods] == ["hyprland", "xdotool"]
        assert all(m.timeout == 0.5 for m in methods)

    def test_simulation_from_environment(self, simulate_window):
        path = simulate_window("kitty")
        methods = build_detection_methods(["niri"], environ={"CHORD_DISPATCH_SIMULATION_FILE": path})
        assert [m.name for m in methods] == ["simulation", "niri"]

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            build_detection_methods(["gnome"], environ={})


def fake_method(name, available=True, result=None, error=None):
    method = MagicMock()
    method.name = name
    method.is_available.return_value = available
    if error:
        method.detect.side_effect = error
    else:
        method.detect.return_value = result
    return method


class TestResolveFocusedContext:
    def test_first_answer_wins(self):
        first = fake_method("niri", result=WindowContext("kitty"))
        second = fake_method("xdotool", result=WindowContext("firefox"))

        assert resolve_focused_context([first, second]).app_id == "kitty"
        second.detect.assert_not_called()

    def test_unavailable_methods_skipped(self):
        missing = fake_method("niri", available=False)
        working = fake_method("hyprland", result=WindowContext("foot"))

        assert resolve_focused_context([missing, working]).app_id == "foot"
        missing.detect.assert_not_called()

    def test_query_failure_falls_through(self):
        broken = fake_method("niri", error=WindowQueryError("malformed JSON"))
        working = fake_method("sway", result=WindowContext("foot"))

        assert resolve_focused_context([broken, working]).app_id == "foot"

    @patch('shutil.which', return_value="/usr/bin/tool")
    @patch('subprocess.run')
    def test_malformed_identifier_falls_through(self, mock_run, mock_which):
        def run_side_effect(cmd, **kwargs):
            if cmd[0] == "niri":
                return completed(json.dumps([{"app_id": 42, "is_focused": True}]))
            return completed(json.dumps({"class": "kitty", "title": "vim"}))

        mock_run.side_effect = run_side_effect

        context = resolve_focused_context([NiriDetection(), HyprlandDetection()])

        assert context == WindowContext("kitty", "vim", "hyprland")

    @patch('shutil.which', return_value="/usr/bin/xdotool")
    @patch('subprocess.run')
    def test_undecodable_output_falls_back_to_default(self, mock_run, mock_which, caplog):
        mock_run.side_effect = undecodable()

        with caplog.at_level("WARNING"):
            assert resolve_focused_context([XdotoolDetection()]) is None

        assert "undecodable output" in caplog.text

    def test_unreadable_simulation_file_falls_through(self, tmp_path):
        path = tmp_path / "fake_window"
        path.write_bytes(b"\xff\xfe")
        working = fake_method("niri", result=WindowContext("foot"))

        assert resolve_focused_context([SimulationDetection(str(path)), working]).app_id == "foot"

    def test_no_focus_is_authoritative(self):
        empty = fake_method("niri", result=None)
        other = fake_method("xdotool", result=WindowContext("firefox"))

        assert resolve_focused_context([empty, other]) is None
        other.detect.assert_not_called()

    def test_all_failing_returns_none(self, caplog):
        methods = [fake_method("niri", available=False),
                   fake_method("xdotool", error=WindowQueryError("boom"))]

        with caplog.at_level("WARNING"):
            assert resolve_focused_context(methods) is None

        assert "falling back to default action" in caplog.text

    def test_no_methods(self):
        assert resolve_focused_context([]) is None

    @patch('shutil.which', return_value=None)
    def test_tools_not_installed(self, mock_which, clean_env):
        assert resolve_focused_context() is None
