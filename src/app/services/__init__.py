"""
Application Services.

역할:
- course_editor: 편집 드래프트 → 코스/챕터/레슨 저장
- course_viewer: 열람, 등록, 완료 토글, 자동 완료, 퀴즈
- community: 커뮤니티 설정, 규칙, 슬러그
- members: 멤버 역할/제거/정지 해제
- account: 가입, 로그인, 비밀번호, 이메일 인증
- profile: 프로필 캐시, 프로필 페이지, 팔로우
"""

from .account import AccountService
from .community import CommunityService
from .course_editor import CourseEditorService
from .course_viewer import ActivityRegistry, CourseViewerService
from .members import MemberService
from .profile import ProfileService

__all__ = [
    "AccountService",
    "ActivityRegistry",
    "CommunityService",
    "CourseEditorService",
    "CourseViewerService",
    "MemberService",
    "ProfileService",
]
