"""Unit tests for the single-instance lock."""

import fcntl
import os

import pytest

from steam_animation.core.errors import InstanceConflictError
from steam_animation.core.instance_lock import InstanceLock, running_pid


def test_acquire_writes_pid(tmp_path):
    lock_file = tmp_path / "state" / "daemon.lock"

    with InstanceLock(lock_file) as lock:
        assert lock.held
        assert lock_file.read_text().strip() == str(os.getpid())
        assert running_pid(lock_file) == os.getpid()

    assert lock_file.read_text() == ""
    assert running_pid(lock_file) is None


def test_release_keeps_one_lock_inode(tmp_path):
    lock_file = tmp_path / "daemon.lock"
    first = InstanceLock(lock_file)
    first.acquire()
    inode = lock_file.stat().st_ino

    # A starter that opened the file while the first daemon still held it
    waiting = open(lock_file, "a+", encoding="utf-8")
    try:
        first.release()
        fcntl.flock(waiting.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)

        assert lock_file.stat().st_ino == inode
        with pytest.raises(InstanceConflictError):
            InstanceLock(lock_file).acquire()
    finally:
        waiting.close()


def test_second_instance_conflicts(tmp_path):
    lock_file = tmp_path / "daemon.lock"
    first = InstanceLock(lock_file)
    first.acquire()
    try:
        with pytest.raises(InstanceConflictError) as excinfo:
            InstanceLock(lock_file).acquire()
        assert excinfo.value.pid == os.getpid()
    finally:
        first.release()

    second = InstanceLock(lock_file)
    second.acquire()
    second.release()


def test_stale_lock_file_is_ignored(tmp_path):
    lock_file = tmp_path / "daemon.lock"
    lock_file.write_text("999999\n")

    assert running_pid(lock_file) is None

    with InstanceLock(lock_file):
        assert running_pid(lock_file) == os.getpid()


def test_release_without_acquire_is_noop(tmp_path):
    lock = InstanceLock(tmp_path / "daemon.lock")
    lock.release()
    assert not lock.held
