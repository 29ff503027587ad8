"""
tests/test_service.py
─────────────────────
Everything around the colony: file store, configuration, console output,
and the end-to-end run service.

Group 1 — matrix_store load/save and MalformedMatrix
Group 2 — ColonyConfig / ServiceSettings / environment overrides
Group 3 — ConsoleReporter formatting
Group 4 — TspRunService and the entry point
"""

from __future__ import annotations

import io
from pathlib import Path

import numpy as np
import pytest
from pydantic import ValidationError

from colony_core.distance import DistanceField
from tsp_service.__main__ import main
from tsp_service.reporting.console import ConsoleReporter, format_length, format_route
from tsp_service.service import TspRunService
from tsp_service.shared.models import (
    ColonyConfig,
    IterationRecord,
    RunReport,
    ServiceSettings,
    load_settings,
)
from tsp_service.storage.matrix_store import MalformedMatrix, load_distances, save_distances


SCENARIO_CSV = "0,10,15,20\n10,0,35,25\n15,35,0,30\n20,25,30,0\n"


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def _small_config(**overrides) -> ColonyConfig:
    values = dict(n_cities=6, n_ants=4, n_iterations=3, seed=11)
    values.update(overrides)
    return ColonyConfig(**values)


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 1 — matrix_store
# ─────────────────────────────────────────────────────────────────────────────

class TestMatrixStore:

    def test_load_valid_file(self, tmp_path):
        path = _write(tmp_path / "d.csv", SCENARIO_CSV)
        d = load_distances(path, 4)
        assert d.n == 4
        assert d.distance(1, 2) == 35.0
        for i in range(4):
            assert d.distance(i, i) == 0.0

    def test_load_accepts_decimals_whitespace_and_trailing_blank_lines(self, tmp_path):
        path = _write(tmp_path / "d.csv", "0, 1.5\n 2.25 ,0\n\n")
        d = load_distances(path, 2)
        assert d.distance(0, 1) == 1.5
        assert d.distance(1, 0) == 2.25

    def test_blank_line_between_rows_rejected(self, tmp_path):
        path = _write(tmp_path / "d.csv", "0,1,2\n\n1,0,1\n\n\n2,1,0\n")
        with pytest.raises(MalformedMatrix, match="blank line") as exc_info:
            load_distances(path, 3)
        assert exc_info.value.line == 2

    def test_leading_blank_line_rejected(self, tmp_path):
        path = _write(tmp_path / "d.csv", "\n0,1\n1,0\n")
        with pytest.raises(MalformedMatrix) as exc_info:
            load_distances(path, 2)
        assert exc_info.value.line == 1

    def test_row_with_too_few_fields(self, tmp_path):
        path = _write(tmp_path / "d.csv", "0,10,15,20\n10,0,35\n15,35,0,30\n20,25,30,0\n")
        with pytest.raises(MalformedMatrix) as exc_info:
            load_distances(path, 4)
        assert exc_info.value.line == 2
        assert exc_info.value.path == path

    def test_too_few_rows(self, tmp_path):
        path = _write(tmp_path / "d.csv", "0,1,2\n1,0,2\n")
        with pytest.raises(MalformedMatrix, match="expected 3 rows"):
            load_distances(path, 3)

    def test_too_many_rows(self, tmp_path):
        path = _write(tmp_path / "d.csv", SCENARIO_CSV + "1,2,3,4\n")
        with pytest.raises(MalformedMatrix) as exc_info:
            load_distances(path, 4)
        assert exc_info.value.line == 5

    def test_matrix_size_differs_from_configured_n(self, tmp_path):
        path = _write(tmp_path / "d.csv", SCENARIO_CSV)
        with pytest.raises(MalformedMatrix):
            load_distances(path, 5)

    def test_unparseable_field(self, tmp_path):
        path = _write(tmp_path / "d.csv", "0,abc\n1,0\n")
        with pytest.raises(MalformedMatrix, match="not a number") as exc_info:
            load_distances(path, 2)
        assert exc_info.value.line == 1

    @pytest.mark.parametrize("text", ["0,-1\n1,0\n", "3,1\n1,0\n", "0,nan\n1,0\n"])
    def test_invalid_values(self, tmp_path, text):
        path = _write(tmp_path / "d.csv", text)
        with pytest.raises(MalformedMatrix):
            load_distances(path, 2)

    def test_malformed_is_value_error(self):
        assert issubclass(MalformedMatrix, ValueError)

    def test_save_then_load(self, tmp_path):
        original = DistanceField.random(7, 5, 150, rng=np.random.default_rng(0))
        path = tmp_path / "nested" / "d.csv"
        save_distances(path, original)
        assert load_distances(path, 7) == original

    def test_save_writes_integers_without_decimals(self, tmp_path):
        path = tmp_path / "d.csv"
        save_distances(path, DistanceField([[0, 3], [2.5, 0]]))
        assert path.read_text(encoding="utf-8") == "0,3\n2.5,0\n"


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 2 — Configuration
# ─────────────────────────────────────────────────────────────────────────────

class TestConfiguration:

    def test_defaults(self):
        c = ColonyConfig()
        assert (c.n_cities, c.n_ants, c.n_iterations) == (300, 100, 100)
        assert (c.alpha, c.beta, c.evaporation_rate, c.initial_pheromone) == (1.0, 5.0, 0.2, 1.0)
        assert (c.distance_low, c.distance_high) == (5, 150)
        assert c.seed is None and c.start_city is None
        assert c.n_workers == 1

    @pytest.mark.parametrize(
        "overrides",
        [
            {"n_cities": 1},
            {"n_ants": 0},
            {"n_iterations": 0},
            {"evaporation_rate": 1.5},
            {"evaporation_rate": -0.1},
            {"initial_pheromone": 0.0},
            {"distance_low": 0},
            {"distance_low": 10, "distance_high": 5},
            {"n_cities": 4, "start_city": 4},
            {"n_workers": 0},
        ],
    )
    def test_invalid_config_rejected(self, overrides):
        with pytest.raises(ValidationError):
            ColonyConfig(**overrides)

    def test_load_settings_without_overrides(self):
        config, settings = load_settings({})
        assert config == ColonyConfig()
        assert settings == ServiceSettings()
        assert settings.matrix_path == Path("distances.csv")

    def test_load_settings_with_overrides(self):
        config, settings = load_settings({
            "TSP_N_CITIES": "12",
            "TSP_BETA": "2.5",
            "TSP_SEED": "7",
            "TSP_MATRIX_PATH": "/tmp/m.csv",
            "TSP_PREVIEW_SIZE": "3",
            "UNRELATED": "x",
        })
        assert config.n_cities == 12
        assert config.beta == 2.5
        assert config.seed == 7
        assert settings.matrix_path == Path("/tmp/m.csv")
        assert settings.preview_size == 3

    def test_empty_optional_override_means_none(self):
        config, _ = load_settings({"TSP_SEED": ""})
        assert config.seed is None

    def test_invalid_override_raises(self):
        with pytest.raises(ValidationError):
            load_settings({"TSP_N_ANTS": "lots"})

    @pytest.mark.parametrize("raw,expected", [("debug", "DEBUG"), (" Warning ", "WARNING"),
                                              ("ERROR", "ERROR")])
    def test_log_level_normalised(self, raw, expected):
        assert ServiceSettings(log_level=raw).log_level == expected

    @pytest.mark.parametrize("raw", ["LOUD", "", "verbose"])
    def test_unknown_log_level_rejected(self, raw):
        with pytest.raises(ValidationError, match="log level"):
            ServiceSettings(log_level=raw)
        with pytest.raises(ValidationError):
            load_settings({"TSP_LOG_LEVEL": raw})


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 3 — ConsoleReporter
# ─────────────────────────────────────────────────────────────────────────────

class TestConsoleReporter:

    def test_format_helpers(self):
        assert format_length(80.0) == "80"
        assert format_length(80.5) == "80.5000"
        assert format_route([3, 0, 2, 1]) == "3 -> 0 -> 2 -> 1"

    def test_matrix_preview(self):
        out = io.StringIO()
        reporter = ConsoleReporter(out, preview_size=2)
        reporter.matrix_source("distances.csv", loaded=True)
        reporter.matrix_preview(DistanceField([[0, 10, 15], [10, 0, 35], [15, 35, 0]]))
        assert out.getvalue().splitlines() == [
            "Matrix loaded from distances.csv",
            "Graph Distances (matrix):",
            "   0   10",
            "  10    0",
        ]

    def test_matrix_saved_line(self):
        out = io.StringIO()
        ConsoleReporter(out).matrix_source("d.csv", loaded=False)
        assert out.getvalue() == "Matrix saved to d.csv\n"

    def test_iteration_and_final_lines(self):
        out = io.StringIO()
        reporter = ConsoleReporter(out)
        record = IterationRecord(
            iteration=3, best_length=80.0, iteration_best_length=85.0, mean_length=90.0
        )
        reporter.iteration(record)
        reporter.final(RunReport(
            n_cities=4, n_ants=1, best_tour=[0, 1, 3, 2], best_length=80.0,
            iterations=[record],
        ))
        assert out.getvalue().splitlines() == [
            "Iteration 3: Best Length = 80",
            "Best Route: 0 -> 1 -> 3 -> 2",
            "Best Length: 80",
        ]

    def test_defaults_to_stdout(self, capsys):
        ConsoleReporter().matrix_source("x.csv", loaded=True)
        assert capsys.readouterr().out == "Matrix loaded from x.csv\n"


# ─────────────────────────────────────────────────────────────────────────────
# GROUP 4 — TspRunService and entry point
# ─────────────────────────────────────────────────────────────────────────────

class TestTspRunService:

    def _service(self, tmp_path, config=None, out=None) -> TspRunService:
        settings = ServiceSettings(matrix_path=tmp_path / "distances.csv", preview_size=3)
        reporter = ConsoleReporter(out if out is not None else io.StringIO(), preview_size=3)
        return TspRunService(config or _small_config(), settings, reporter)

    def test_generates_and_saves_when_file_missing(self, tmp_path):
        out = io.StringIO()
        service = self._service(tmp_path, out=out)
        distances = service.prepare_distances()

        path = tmp_path / "distances.csv"
        assert path.exists()
        assert load_distances(path, 6) == distances
        off = distances.as_matrix()[~np.eye(6, dtype=bool)]
        assert off.min() >= 5 and off.max() <= 150
        assert out.getvalue().startswith(f"Matrix saved to {path}\nGraph Distances (matrix):\n")

    def test_loads_existing_file(self, tmp_path):
        _write(tmp_path / "distances.csv", SCENARIO_CSV)
        out = io.StringIO()
        service = self._service(tmp_path, config=_small_config(n_cities=4), out=out)
        distances = service.prepare_distances()
        assert distances.distance(2, 3) == 30.0
        assert out.getvalue().splitlines()[0].startswith("Matrix loaded from")

    def test_malformed_file_is_fatal_and_leaves_no_state(self, tmp_path):
        _write(tmp_path / "distances.csv", "0,10,15\n10,0,35,25\n")
        service = self._service(tmp_path, config=_small_config(n_cities=4))
        with pytest.raises(MalformedMatrix):
            service.run()
        assert service.distances is None

    def test_full_run_output(self, tmp_path):
        out = io.StringIO()
        service = self._service(tmp_path, out=out)
        report, simulator = service.run()

        lines = out.getvalue().splitlines()
        iteration_lines = [l for l in lines if l.startswith("Iteration ")]
        assert len(iteration_lines) == 3
        assert lines[-2].startswith("Best Route: ")
        assert lines[-1] == f"Best Length: {format_length(report.best_length)}"
        assert sorted(report.best_tour) == list(range(6))
        assert simulator.iteration == 3

    def test_same_seed_same_result_whether_generated_or_loaded(self, tmp_path):
        first, _ = self._service(tmp_path).run()      # generates + saves
        second, _ = self._service(tmp_path).run()     # loads the saved file
        assert second.best_tour == first.best_tour
        assert second.best_length == first.best_length

    def test_warm_start_run(self, tmp_path):
        service = self._service(tmp_path)
        _, simulator = service.run()
        follow_up = self._service(tmp_path)
        _, second = follow_up.run(pheromone=simulator.pheromone.copy())
        assert second.iteration == 3


class TestEntryPoint:

    def test_main_success(self, tmp_path, capsys):
        status = main({
            "TSP_N_CITIES": "5",
            "TSP_N_ANTS": "3",
            "TSP_N_ITERATIONS": "2",
            "TSP_SEED": "1",
            "TSP_MATRIX_PATH": str(tmp_path / "d.csv"),
        })
        assert status == 0
        out = capsys.readouterr().out
        assert "Iteration 2: Best Length = " in out
        assert "Best Route: " in out
        assert (tmp_path / "d.csv").exists()

    def test_main_malformed_matrix(self, tmp_path):
        bad = _write(tmp_path / "d.csv", "0,1\n1,0\n")
        status = main({"TSP_N_CITIES": "3", "TSP_MATRIX_PATH": str(bad)})
        assert status == 1

    def test_main_invalid_configuration(self):
        assert main({"TSP_N_CITIES": "1"}) == 2

    def test_main_unknown_log_level(self, tmp_path):
        status = main({"TSP_LOG_LEVEL": "LOUD", "TSP_MATRIX_PATH": str(tmp_path / "d.csv")})
        assert status == 2
        assert not (tmp_path / "d.csv").exists()
