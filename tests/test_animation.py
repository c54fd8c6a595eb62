"""Tests for the orbit animation driver."""

from __future__ import annotations

import asyncio
import math
from unittest.mock import AsyncMock

import pytest

from vts_orbiter.animation import (
    ModelPose,
    OrbitAnimator,
    orbit_sample,
    phase_to_rotation,
)
from vts_orbiter.config import OrbitConfig


def make_animator(handle=lambda: "X1", *, interval=60.0, pose=None):
    send = AsyncMock(return_value=True)
    animator = OrbitAnimator(
        OrbitConfig(interval=interval),
        handle=handle,
        pose=pose or ModelPose(),
        send=send,
    )
    return animator, send


class TestPhaseToRotation:
    @pytest.mark.parametrize(
        ("phase", "expected"),
        [
            (0.0, 0.0),
            (math.pi / 2, -90.0),
            (math.pi, -180.0),
            (3 * math.pi / 2, 90.0),
            (2 * math.pi + math.pi / 4, -45.0),
        ],
    )
    def test_normalized_and_negated(self, phase, expected):
        assert phase_to_rotation(phase) == pytest.approx(expected)

    def test_always_in_range(self):
        for step in range(200):
            rotation = phase_to_rotation(step * 0.35)
            assert -180.0 <= rotation < 180.0


class TestOrbitSample:
    def test_ellipse_around_head(self):
        config = OrbitConfig()
        start = orbit_sample(0.0, ModelPose(), config)
        assert start.x == pytest.approx(0.18)
        assert start.y == pytest.approx(0.75)

        quarter = orbit_sample(math.pi / 2, ModelPose(), config)
        assert quarter.x == pytest.approx(0.0)
        assert quarter.y == pytest.approx(0.75 + 0.18 * 0.5)

    def test_follows_model_position(self):
        config = OrbitConfig()
        pose = ModelPose(x=0.5, y=-0.25, size=-40.0)
        sample = orbit_sample(0.0, pose, config)
        assert sample.x == pytest.approx(0.5 + 0.18)
        assert sample.y == pytest.approx(-0.25 + 0.75)


class TestModelPose:
    def test_partial_update_keeps_other_fields(self):
        pose = ModelPose(x=1.0, y=2.0, rotation=3.0, size=4.0)
        pose.update({"positionX": -0.5})
        assert pose == ModelPose(x=-0.5, y=2.0, rotation=3.0, size=4.0)


class TestTick:
    @pytest.mark.asyncio
    async def test_no_handle_means_no_send(self):
        animator, send = make_animator(handle=lambda: None)

        for _ in range(5):
            assert await animator.tick() is False

        send.assert_not_called()
        assert animator.phase == 0.0

    @pytest.mark.asyncio
    async def test_tick_sends_move(self):
        animator, send = make_animator()

        assert await animator.tick() is True

        message_type, data = send.call_args.args
        assert message_type == "ItemMoveRequest"
        item = data["itemsToMove"][0]
        assert item["itemInstanceID"] == "X1"
        assert item["size"] == -1000
        assert item["order"] == -1000
        assert item["fadeMode"] == "linear"
        assert item["timeInSeconds"] == 0.1
        assert item["rotation"] == pytest.approx(phase_to_rotation(0.35))
        assert animator.phase == pytest.approx(0.35)

    @pytest.mark.asyncio
    async def test_handle_revoked_between_ticks(self):
        handles = iter(["X1", None])
        animator, send = make_animator(handle=lambda: next(handles))

        assert await animator.tick() is True
        assert await animator.tick() is False
        assert send.await_count == 1


class TestStartStop:
    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        animator, _ = make_animator()
        animator.start()
        task = animator._task
        animator.start()
        assert animator._task is task
        assert animator.running
        animator.stop()
        assert not animator.running

    @pytest.mark.asyncio
    async def test_stop_when_stopped_is_safe(self):
        animator, _ = make_animator()
        animator.stop()
        animator.stop()
        assert not animator.running

    @pytest.mark.asyncio
    async def test_loop_ticks_on_interval(self):
        animator, send = make_animator(interval=0.01)
        animator.start()
        await asyncio.sleep(0.1)
        animator.stop()
        assert send.await_count >= 2

    @pytest.mark.asyncio
    async def test_phase_survives_restart(self):
        animator, _ = make_animator()
        await animator.tick()
        animator.start()
        animator.stop()
        animator.start()
        animator.stop()
        assert animator.phase == pytest.approx(0.35)
