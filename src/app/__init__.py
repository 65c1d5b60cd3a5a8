"""
App layer: UI 서버 (FastAPI + Jinja2).

역할:
- 관리자 화면: 문서 업로드/목록/삭제
- 채팅 화면: 메시지 → 웹훅 → 응답
- ⚠️ 저장소 안전 로직 없음 (core에 위임)

주의: 폴더 구분
- src/app/templates/ → Jinja2 HTML
- uploads/ (루트) → 업로드 저장소 (metadata.json 포함)
"""
