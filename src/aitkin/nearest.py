"""
aitkin/nearest.py - 近邻索引

只存储顶点 id 和状态的度量嵌入坐标，不持有状态本身；顶点 id 是
所属图顶点表中的整数下标。

实现：
    前缀部分用 scipy cKDTree 建树，新插入的尾部用 numpy 暴力扫描。
    尾部长度超过 rebuild_threshold 时整体重建 KD 树，使插入摊还
    O(log n)，同时避免每插入一个点都重建。

每个工作线程的每张图各持有一个实例，不做加锁。
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np
from scipy.spatial import cKDTree

from .spaces import StateSpace

logger = logging.getLogger(__name__)


class NearestNeighbors:
    """增量近邻索引

    Args:
        space: 状态空间（提供 embed 度量嵌入）
        rebuild_threshold: 未建树尾部的最大长度
        capacity: 初始容量（不足时翻倍）

    Example:
        >>> nn = NearestNeighbors(space)
        >>> nn.add(0, start)
        >>> nn.add(1, goal)
        >>> nn.nearest_k(q, k=1)
        [(0, 0.25)]
    """

    def __init__(
        self,
        space: StateSpace,
        rebuild_threshold: int = 64,
        capacity: int = 1024,
    ) -> None:
        self.space = space
        self.rebuild_threshold = max(1, int(rebuild_threshold))
        self._edim = space.embedding_dimension
        self._cap = max(1, int(capacity))
        self._points = np.empty((self._cap, self._edim), dtype=np.float64)
        self._ids = np.empty(self._cap, dtype=np.int64)
        self._n = 0
        self._n_built = 0
        self._tree: Optional[cKDTree] = None

    @property
    def size(self) -> int:
        return self._n

    def __len__(self) -> int:
        return self._n

    def list_ids(self) -> List[int]:
        return self._ids[:self._n].tolist()

    def clear(self) -> None:
        self._n = 0
        self._n_built = 0
        self._tree = None

    def add(self, vertex_id: int, state: np.ndarray) -> None:
        if self._n >= self._cap:
            self._cap *= 2
            new_p = np.empty((self._cap, self._edim), dtype=np.float64)
            new_p[:self._n] = self._points[:self._n]
            self._points = new_p
            new_i = np.empty(self._cap, dtype=np.int64)
            new_i[:self._n] = self._ids[:self._n]
            self._ids = new_i
        self._points[self._n] = self.space.embed(state)
        self._ids[self._n] = vertex_id
        self._n += 1
        if self._n - self._n_built > self.rebuild_threshold:
            self._rebuild()

    def _rebuild(self) -> None:
        self._tree = cKDTree(self._points[:self._n].copy())
        self._n_built = self._n
        logger.debug("NearestNeighbors: KD 树重建, %d 个点", self._n)

    def _tail(self, q: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """尾部暴力扫描: 返回 (下标, 距离)"""
        tail = self._points[self._n_built:self._n]
        if tail.shape[0] == 0:
            return np.empty(0, dtype=np.int64), np.empty(0, dtype=np.float64)
        d = np.linalg.norm(tail - q, axis=1)
        return np.arange(self._n_built, self._n, dtype=np.int64), d

    def nearest_k(self, state: np.ndarray, k: int) -> List[Tuple[int, float]]:
        """k 近邻, 按距离升序返回 [(vertex_id, distance), ...]"""
        if k <= 0 or self._n == 0:
            return []
        q = self.space.embed(state)
        idxs = []
        dists = []
        if self._tree is not None and self._n_built > 0:
            kk = min(k, self._n_built)
            d, i = self._tree.query(q, k=kk)
            idxs.append(np.atleast_1d(i).astype(np.int64))
            dists.append(np.atleast_1d(d).astype(np.float64))
        ti, td = self._tail(q)
        idxs.append(ti)
        dists.append(td)
        all_i = np.concatenate(idxs)
        all_d = np.concatenate(dists)
        order = np.argsort(all_d, kind='stable')[:k]
        return [(int(self._ids[all_i[j]]), float(all_d[j])) for j in order]

    def nearest(self, state: np.ndarray) -> Optional[Tuple[int, float]]:
        """最近邻 (vertex_id, distance)，索引为空时返回 None"""
        res = self.nearest_k(state, 1)
        return res[0] if res else None

    def nearest_r(self, state: np.ndarray, radius: float) -> List[Tuple[int, float]]:
        """半径 radius 内的所有点, 按距离升序返回"""
        if self._n == 0 or radius < 0.0:
            return []
        q = self.space.embed(state)
        out_i = []
        if self._tree is not None and self._n_built > 0 and np.isfinite(radius):
            out_i.extend(self._tree.query_ball_point(q, radius))
        elif self._n_built > 0:
            # 无限半径: 全部前缀
            out_i.extend(range(self._n_built))
        ti, td = self._tail(q)
        out_i.extend(ti[td <= radius].tolist())
        if not out_i:
            return []
        idx = np.asarray(out_i, dtype=np.int64)
        d = np.linalg.norm(self._points[idx] - q, axis=1)
        order = np.argsort(d, kind='stable')
        return [(int(self._ids[idx[j]]), float(d[j])) for j in order]
