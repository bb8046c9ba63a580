"""
Blueprint registration for EduManage.

Every blueprint declares full /api/... paths; none uses a URL prefix. The
core blueprint goes last because its catch-all serves the SPA shell.
"""

from __future__ import annotations


def register_blueprints(app):
    from blueprints.users import bp as users_bp
    from blueprints.students import bp as students_bp
    from blueprints.teachers import bp as teachers_bp
    from blueprints.parents import bp as parents_bp
    from blueprints.schools import bp as schools_bp
    from blueprints.subjects import bp as subjects_bp
    from blueprints.classes import bp as classes_bp
    from blueprints.grades import bp as grades_bp
    from blueprints.quizzes import bp as quizzes_bp
    from blueprints.lesson_plans import bp as lesson_plans_bp
    from blueprints.files import bp as files_bp
    from blueprints.notifications import bp as notifications_bp
    from blueprints.cms import bp as cms_bp
    from blueprints.dashboard import bp as dashboard_bp
    from blueprints.core import bp as core_bp

    app.register_blueprint(users_bp)
    app.register_blueprint(students_bp)
    app.register_blueprint(teachers_bp)
    app.register_blueprint(parents_bp)
    app.register_blueprint(schools_bp)
    app.register_blueprint(subjects_bp)
    app.register_blueprint(classes_bp)
    app.register_blueprint(grades_bp)
    app.register_blueprint(quizzes_bp)
    app.register_blueprint(lesson_plans_bp)
    app.register_blueprint(files_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(cms_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(core_bp)
