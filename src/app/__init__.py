"""
App layer: 웹 서버 (FastAPI + HTMX).

역할:
- 페이지 렌더링, 편집기 드래프트, 뷰어 활동 신호 수신
- 백엔드 REST API 호출 (backend/)
- ⚠️ 화면 규칙 로직 없음 (core에 위임)

주의: 폴더 구분
- src/app/templates/ → Jinja2 HTML 페이지
- src/app/routes/ → HTML 조각 + JSON API
"""
