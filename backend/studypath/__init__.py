"""StudyPath roadmap progression and calibration engine."""
