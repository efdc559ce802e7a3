"""
GraphRegistry: the process-scoped cache of CourseModuleGraph instances,
plus the invalidation entry points that keep it and the versioned store
in step with the data source.
"""
import logging
import threading
import time

from crum import get_current_user

from . import config
from .builders import CourseCacheBuilder, course_cache_key
from .course_formats import reset_course_format_cache
from .graph import CourseModuleGraph, coerce_course

log = logging.getLogger(__name__)


class GraphRegistry:
    """
    Holds at most ``max_size`` graphs, one per course, evicting the least
    recently accessed one when full.

    It also remembers, per course, the lowest cacherev this process may
    use, so a caller holding a course object read before a rebuild cannot
    bring the old payload back.
    """

    def __init__(self, services, store, clock=time.monotonic, max_size=None):
        self.services = services
        self.store = store
        self.max_size = max_size or config.get_setting(config.INSTANCE_CACHE_SIZE)
        self._clock = clock
        self._graphs = {}
        self._accessed = {}
        self._min_cacherevs = {}
        self._lock = threading.RLock()
        # Course being served by the current request, always integrity checked.
        self.current_course_id = None

    @property
    def builder(self):
        return CourseCacheBuilder(self.store, self.services.data_source)

    def __len__(self):
        return len(self._graphs)

    def __contains__(self, course_id):
        return course_id in self._graphs

    def normalize_user_id(self, user_id):
        """
        Returns user_id, or the id of the current user when user_id is 0 or None.
        """
        if user_id:
            return user_id
        user = get_current_user()
        return getattr(user, 'id', None) or 0

    def _should_check_integrity(self, course_id):
        return course_id in (self.current_course_id, config.get_setting(config.SITE_COURSE_ID))

    def instance(self, course, user_id=0):
        """
        Returns the CourseModuleGraph of course for user_id, building it if
        the cached one is missing, for another user, or for another cacherev.

        Arguments:
            course: CourseSummary, course row dict or course id
            user_id (int): 0 for the current user

        Raises:
            LockTimeout, CourseNotFound
        """
        course = coerce_course(course)
        user_id = self.normalize_user_id(user_id)

        with self._lock:
            graph = self._graphs.get(course.id)
            if graph is not None:
                if graph.user_id == user_id and (
                    course.cacherev is None or course.cacherev == graph.course.cacherev
                ):
                    self._accessed[course.id] = self._clock()
                    return graph
                self.clear(course.id)

        graph = CourseModuleGraph(
            course,
            user_id,
            self.services,
            self.store,
            min_cacherev=self._min_cacherevs.get(course.id),
            check_integrity=self._should_check_integrity(course.id),
        )

        with self._lock:
            if len(self._graphs) >= self.max_size:
                oldest = min(self._accessed, key=self._accessed.get)
                log.debug('Evicting course %s from the modinfo instance cache.', oldest)
                self.clear(oldest)
            self._graphs[course.id] = graph
            self._accessed[course.id] = self._clock()
        return graph

    def clear(self, course=None, new_cacherev=0):
        """
        Forgets the graph of one course, or everything when course is None.

        When new_cacherev is given, later graphs of the course will use at
        least that cacherev.
        """
        with self._lock:
            if course is None:
                self._graphs.clear()
                self._accessed.clear()
                self._min_cacherevs.clear()
                return
            course_id = coerce_course(course).id
            self._graphs.pop(course_id, None)
            self._accessed.pop(course_id, None)
            if new_cacherev:
                self._min_cacherevs[course_id] = new_cacherev

    def purge_course_cache(self, course_id):
        """
        Invalidates the cached payload of a course by bumping its cacherev.
        The stored entry is not deleted; it simply stops matching.
        """
        cacherev = self.services.data_source.increment_cacherev(course_id)
        self.store.invalidate(course_cache_key(course_id), cacherev)
        self.clear(course_id, cacherev)
        return cacherev

    def purge_course_caches(self, course_ids=None):
        """
        Purges the given courses, or every course when course_ids is empty.
        """
        if not course_ids:
            course_ids = self.services.data_source.get_course_ids()
        for course_id in course_ids:
            self.purge_course_cache(course_id)

    def _purge_record_entries(self, course_id, purge):
        """
        Replaces the stored payload of a course with purge(record) under the
        course lock. The result is marked stale, so the next read rebuilds.
        """
        course = self.services.data_source.get_course(course_id)
        key = course_cache_key(course_id)
        with self.store.lock(key):
            record = self.store.get_versioned(key, course.cacherev)
            if record is not None:
                updated = purge(record)
                if updated is not record:
                    self.store.set_versioned(key, record.version, updated)
        self.clear(course_id)

    def purge_course_modules_cache(self, course_id, cm_ids):
        self._purge_record_entries(course_id, lambda record: record.without_modules(cm_ids))

    def purge_course_module_cache(self, course_id, cm_id):
        self.purge_course_modules_cache(course_id, [cm_id])

    def purge_course_section_cache_by_id(self, course_id, section_id):
        self._purge_record_entries(course_id, lambda record: record.without_section(section_id))

    def purge_course_section_cache_by_number(self, course_id, section_number):
        def purge(record):
            section_id = record.find_section_id(section_number)
            if section_id is None:
                return record
            return record.without_section(section_id)
        self._purge_record_entries(course_id, purge)

    def rebuild_course_cache(self, course_id=0, clear_only=False, partial_rebuild=False):
        """
        Bumps the cacherev of one course (or of all courses when course_id
        is 0), clears the in-process graphs and, unless clear_only, builds
        the new payloads straight away.

        With partial_rebuild, entries still present in the stored payload
        are reused instead of being rebuilt.
        """
        if not course_id and partial_rebuild:
            raise ValueError('partial_rebuild only works when a course id is provided.')

        reset_course_format_cache()
        data_source = self.services.data_source
        if course_id:
            course_ids = [course_id]
            cacherev = data_source.increment_cacherev(course_id)
            self.store.invalidate(course_cache_key(course_id), cacherev)
            self.clear(course_id, cacherev)
        else:
            course_ids = list(data_source.get_course_ids())
            for each_id in course_ids:
                cacherev = data_source.increment_cacherev(each_id)
                self.store.invalidate(course_cache_key(each_id), cacherev)
            self.clear()

        if clear_only:
            return

        builder = self.builder
        for each_id in course_ids:
            course = data_source.get_course(each_id)
            builder.build_course_cache(course, partial_rebuild=partial_rebuild, reason='rebuild')
