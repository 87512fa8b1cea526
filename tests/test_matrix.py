"""Tests for matrix expansion."""

import pytest

from matrixci.dsl import axis, matrix
from matrixci.matrix import expand_matrix, expand_workflow, matrix_size
from matrixci.model import Axis, ConfigurationError


class TestExpandMatrix:
    """Test the cartesian product of axes."""

    def test_reference_matrix_has_eighteen_jobs(self, reference_workflow):
        """3 backends x 3 feature sets x 2 toolchains."""
        configs = expand_workflow(reference_workflow)

        assert len(configs) == 18
        assert len(set(configs)) == 18

    def test_count_is_product_of_cardinalities(self):
        """Job count equals the product of axis sizes."""
        axes = [axis("a", ["1", "2"]), axis("b", ["x"]), axis("c", ["p", "q", "r", "s"])]

        configs = expand_matrix(axes)

        assert len(configs) == matrix_size(axes) == 8
        assert len(set(configs)) == 8

    def test_last_axis_varies_fastest(self):
        """Ordering follows axis order, then value order."""
        configs = expand_matrix([axis("os", ["linux", "mac"]), axis("py", ["3.11", "3.12"])])

        assert [c.as_dict() for c in configs] == [
            {"os": "linux", "py": "3.11"},
            {"os": "linux", "py": "3.12"},
            {"os": "mac", "py": "3.11"},
            {"os": "mac", "py": "3.12"},
        ]

    def test_expansion_is_deterministic(self, reference_workflow):
        """Expanding twice yields the same sequence."""
        first = [c.label for c in expand_workflow(reference_workflow)]
        second = [c.label for c in expand_workflow(reference_workflow)]

        assert first == second
        assert first[0] == "(rustcrypto, , stable)"
        assert first[-1] == "(openssl, os, nightly)"

    def test_pinned_flag_follows_toolchain_axis(self, reference_workflow):
        """Only nightly jobs use the pinned toolchain."""
        configs = expand_workflow(reference_workflow)

        for config in configs:
            assert config.pinned == (config["toolchain"] == "nightly")
        assert sum(c.pinned for c in configs) == 9

    def test_no_toolchain_axis_means_never_pinned(self):
        configs = expand_matrix([axis("toolchain", ["stable", "nightly"])])

        assert not any(c.pinned for c in configs)

    def test_single_axis(self):
        configs = matrix({"features": ["", "os"]}).expand()

        assert [c["features"] for c in configs] == ["", "os"]


class TestMatrixErrors:
    """Test configuration errors raised during expansion."""

    def test_empty_axis_is_configuration_error(self):
        """An axis without values makes the product empty."""
        with pytest.raises(ConfigurationError, match="declares no values"):
            expand_matrix([axis("backend", ["openssl"]), Axis(name="features", values=())])

    def test_no_axes(self):
        with pytest.raises(ConfigurationError, match="at least one axis"):
            expand_matrix([])

    def test_duplicate_axis_names(self):
        with pytest.raises(ConfigurationError, match="Duplicate axis"):
            expand_matrix([axis("a", ["1"]), axis("a", ["2"])])

    def test_duplicate_values(self):
        with pytest.raises(ConfigurationError, match="duplicate values"):
            expand_matrix([axis("a", ["1", "1"])])

    def test_unknown_toolchain_axis(self):
        with pytest.raises(ConfigurationError, match="Toolchain axis"):
            expand_matrix([axis("a", ["1"])], toolchain_axis="toolchain", pinned_value="nightly")
