import json
import os
import tempfile
import unittest

from juliaset.config import (
    DEFAULTS,
    build_render_config,
    build_strategy,
    load_config,
    normalise_config,
    parse_size,
    validate_render_config,
)
from juliaset.dispatch import Strategy
from juliaset.errors import ConfigurationError
from juliaset.kernel import JULIA_C, RenderConfig


class TestParseSize(unittest.TestCase):

    def test_valid(self):
        self.assertEqual(parse_size("1920x1080"), (1920, 1080))
        self.assertEqual(parse_size("20X30"), (20, 30))

    def test_invalid(self):
        for token in ("1920", "axb", "1x2x3", ""):
            with self.assertRaises(ConfigurationError, msg=token):
                parse_size(token)


class TestLoadConfig(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def _write(self, payload):
        path = os.path.join(self.tmp.name, "cfg.json")
        with open(path, "w", encoding="utf-8") as f:
            f.write(payload)
        return path

    def test_defaults_without_path(self):
        self.assertEqual(load_config(None), DEFAULTS)

    def test_file_overrides_defaults(self):
        cfg = load_config(self._write(json.dumps({"width": 64, "strategy": "task"})))
        self.assertEqual(cfg["width"], 64)
        self.assertEqual(cfg["strategy"], "task")
        self.assertEqual(cfg["height"], DEFAULTS["height"])

    def test_non_object_is_rejected(self):
        with self.assertRaises(ConfigurationError):
            load_config(self._write("[1, 2, 3]"))

    def test_unreadable_file(self):
        with self.assertRaises(ConfigurationError):
            load_config(os.path.join(self.tmp.name, "missing.json"))
        with self.assertRaises(ConfigurationError):
            load_config(self._write("{not json"))


class TestNormaliseConfig(unittest.TestCase):

    def test_coerces_types(self):
        cfg = normalise_config(dict(DEFAULTS, width="10", scale="2.5", workers="3", resize="20x10"))
        self.assertEqual(cfg["width"], 10)
        self.assertEqual(cfg["scale"], 2.5)
        self.assertEqual(cfg["workers"], 3)
        self.assertEqual(cfg["resize"], (20, 10))

    def test_missing_field(self):
        cfg = dict(DEFAULTS)
        del cfg["max_iter"]
        with self.assertRaises(ConfigurationError):
            normalise_config(cfg)

    def test_rejects_non_positive(self):
        for key, value in (("width", 0), ("height", -3), ("capture_width", 0), ("max_iter", 0),
                           ("scale", 0), ("zoom", 0), ("workers", 0), ("width", "wide")):
            with self.assertRaises(ConfigurationError, msg=(key, value)):
                normalise_config(dict(DEFAULTS, **{key: value}))

    def test_rejects_unknown_choices(self):
        with self.assertRaises(ConfigurationError):
            normalise_config(dict(DEFAULTS, strategy="gpu"))
        with self.assertRaises(ConfigurationError):
            normalise_config(dict(DEFAULTS, executor="fiber"))
        with self.assertRaises(ConfigurationError):
            normalise_config(dict(DEFAULTS, niceness=-1))
        with self.assertRaises(ConfigurationError):
            normalise_config(dict(DEFAULTS, executor="thread", niceness=3))

    def test_rejects_fractional_and_bool_integers(self):
        for key in ("width", "height", "capture_width", "capture_height", "max_iter", "workers", "chunk_size"):
            for value in (10.7, 2.0, True, "2.5"):
                with self.assertRaises(ConfigurationError, msg=(key, value)):
                    normalise_config(dict(DEFAULTS, **{key: value}))
        with self.assertRaises(ConfigurationError):
            normalise_config(dict(DEFAULTS, scale=True))

    def test_fractional_width_from_json_is_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "cfg.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"width": 10.7}, f)
            with self.assertRaises(ConfigurationError):
                build_render_config(load_config(path))

    def test_is_idempotent(self):
        once = normalise_config(dict(DEFAULTS, resize="8x8"))
        self.assertEqual(normalise_config(once), once)


class TestBuilders(unittest.TestCase):

    def test_render_config(self):
        rc = build_render_config(dict(DEFAULTS, width=30, height=20, max_iter=50))
        self.assertEqual(rc.size, (30, 20))
        self.assertEqual(rc.max_iterations, 50)
        self.assertEqual(rc.zoom, 1.0)
        self.assertEqual(rc.c, JULIA_C)

    def test_strategy(self):
        s = build_strategy(dict(DEFAULTS, strategy="POOL", workers=4, executor="process", niceness=2, chunk_size="16"))
        self.assertIs(s.kind, Strategy.POOL)
        self.assertEqual((s.workers, s.executor, s.niceness, s.chunk_size), (4, "process", 2, 16))
        self.assertIsNone(build_strategy(dict(DEFAULTS)).chunk_size)

    def test_validate_render_config(self):
        ok = RenderConfig(width=1, height=1, capture_width=1, capture_height=1, max_iterations=1, scale=0.1)
        self.assertIs(validate_render_config(ok), ok)
        with self.assertRaises(ConfigurationError):
            validate_render_config(RenderConfig(width=1, height=1, capture_width=1, capture_height=1,
                                                max_iterations=1, scale=-1.0))

    def test_validate_render_config_rejects_non_integer_fields(self):
        for bad in (dict(max_iterations=2.5), dict(width=2.5), dict(width=True), dict(height="8"),
                    dict(scale="0.1"), dict(zoom=False)):
            fields = dict(width=8, height=8, capture_width=8, capture_height=8, max_iterations=10, scale=0.1)
            fields.update(bad)
            with self.assertRaises(ConfigurationError, msg=bad):
                validate_render_config(RenderConfig(**fields))


if __name__ == "__main__":
    unittest.main()
