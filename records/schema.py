"""
records/schema.py -- SQLAlchemy Core table definitions for the relational backends.

These describe tables/views owned by other systems. VetDir only reads them;
RecordsStore(create_schema=True) creates them for tests and local demo data.

One MetaData per backend system so each can live in its own database:
  person -- enterprise directory (system of record), employee and student terms
  hr     -- academic terms, HR person flags, job positions
  badge  -- ID badge issuance
  key    -- physical key registry
  loan   -- equipment loan registry
"""

from sqlalchemy import Column, Date, DateTime, Float, Integer, MetaData, String, Table, Text

# ---------------------------------------------------------------------------
# HR affiliation flags: column -> display label, in display order.
# A flag is set when its column holds "Y".
# ---------------------------------------------------------------------------

HR_FLAG_LABELS: tuple[tuple[str, str], ...] = (
    ("emp_acdmc_federation_flg", "Academic Federation"),
    ("emp_acdmc_flg", "ACDMC"),
    ("emp_acdmc_senate_flg", "ACDMC Senate"),
    ("emp_acdmc_stdt_flg", "ACDMC Stdt"),
    ("emp_faculty_flg", "Faculty"),
    ("emp_ladder_rank_flg", "Ladder Rank"),
    ("emp_mgr_flg", "Manager"),
    ("emp_msp_career_flg", "MSP Career"),
    ("emp_msp_career_partialyr_flg", "MSP Career Partial Year"),
    ("emp_msp_casual_flg", "MSP Casual"),
    ("emp_msp_cntrct_flg", "MSP Contract"),
    ("emp_msp_flg", "MSP"),
    ("emp_msp_senior_mgmt_flg", "MSP Senior Management"),
    ("emp_ssp_career_flg", "SSP Career"),
    ("emp_ssp_career_partialyr_flg", "SSP Career Partial Year"),
    ("emp_ssp_casual_flg", "SSP Casual"),
    ("emp_ssp_casual_restricted_flg", "SSP Casual Restricted"),
    ("emp_ssp_cntrct_flg", "SSP Contract"),
    ("emp_ssp_flg", "SSP"),
    ("emp_ssp_floater_flg", "SSP Floater"),
    ("emp_ssp_per_diem_flg", "SSP Per diem"),
    ("emp_supvr_flg", "Supervisor"),
    ("emp_teaching_faculty_flg", "Teaching Faculty"),
    ("emp_wosemp_flg", "WOSEMP"),
)

# Level code for veterinary medicine students.
VET_STUDENT_LEVEL = "VM"

# ---------------------------------------------------------------------------
# person -- enterprise directory
# ---------------------------------------------------------------------------

person_metadata = MetaData()

people = Table(
    "people",
    person_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("global_id", String(20), index=True),
    Column("legacy_id", String(20), index=True),
    Column("login_id", String(50)),
    Column("mail_id", String(100)),
    Column("employee_id", String(20)),
    Column("student_number", String(20)),
    Column("first_name", String(100), nullable=False, server_default=""),
    Column("middle_name", String(100)),
    Column("last_name", String(100), nullable=False, server_default=""),
    Column("display_first_name", String(100)),
    Column("display_last_name", String(100)),
    Column("display_full_name", String(255)),
    Column("current", Integer, nullable=False, server_default="0"),  # 1 = current affiliate
)

employees = Table(
    "employees",
    person_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("employee_id", String(20), nullable=False, index=True),
    Column("term_code", String(6), nullable=False),
    Column("primary_title", String(100)),
    Column("school_division", String(100)),
    Column("status", String(30)),
    Column("home_dept", String(100)),
    Column("effort_home_dept", String(100)),
    Column("teaching_home_dept", String(100)),
    Column("teaching_percent_fulltime", Float),
)

students = Table(
    "students",
    person_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("student_number", String(20), nullable=False, index=True),
    Column("term_code", String(6), nullable=False),
    Column("level_code", String(4), nullable=False),
)

# ---------------------------------------------------------------------------
# hr -- terms, HR person flags, positions
# ---------------------------------------------------------------------------

hr_metadata = MetaData()

terms = Table(
    "terms",
    hr_metadata,
    Column("term_code", String(6), primary_key=True),
    Column("is_current", Integer, nullable=False, server_default="0"),
)

hr_people = Table(
    "hr_people",
    hr_metadata,
    Column("employee_id", String(20), primary_key=True),
    *(Column(column, String(1)) for column, _label in HR_FLAG_LABELS),
)

job_positions = Table(
    "job_positions",
    hr_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("employee_id", String(20), nullable=False, index=True),
    Column("position_number", String(20)),
    Column("effective_date", Date),
    Column("job_code", String(10)),
    Column("job_code_desc", String(100)),
    Column("dept_id", String(10)),
    Column("dept_desc", String(100)),
    Column("job_status", String(5)),
    Column("job_status_desc", String(50)),
    Column("employee_status", String(5)),
    Column("position_effective_date", Date),
    Column("expected_end_date", Date),
    Column("fte", Float),
    Column("union_code", String(5)),
    Column("reports_to", String(20)),  # position_number of the supervisor
    Column("first_name", String(100)),
    Column("last_name", String(100)),
)

# ---------------------------------------------------------------------------
# badge
# ---------------------------------------------------------------------------

badge_metadata = MetaData()

id_cards = Table(
    "id_cards",
    badge_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("login_id", String(50), nullable=False, index=True),
    Column("number", String(30)),
    Column("display_name", String(255)),
    Column("last_name", String(100)),
    Column("line2", String(255)),
    Column("status", String(50)),
    Column("applied_date", DateTime),
    Column("issue_date", DateTime),
    Column("deactivated_date", DateTime),
    Column("deactivated_reason", String(255)),
)

# ---------------------------------------------------------------------------
# key
# ---------------------------------------------------------------------------

key_metadata = MetaData()

keys = Table(
    "keys",
    key_metadata,
    Column("key_id", Integer, primary_key=True, autoincrement=True),
    Column("key_number", String(30)),
    Column("access_description", Text),
)

key_assignments = Table(
    "key_assignments",
    key_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("key_id", Integer, nullable=False),
    Column("assigned_to", String(20), nullable=False, index=True),  # legacy id
    Column("issued_by", String(20)),  # legacy id of the issuer
    Column("cut_number", String(30)),
    Column("issued_date", DateTime),
    Column("deleted", DateTime),  # soft delete marker
)

# ---------------------------------------------------------------------------
# loan
# ---------------------------------------------------------------------------

loan_metadata = MetaData()

assets = Table(
    "assets",
    loan_metadata,
    Column("asset_id", Integer, primary_key=True, autoincrement=True),
    Column("asset_name", String(255)),
)

loans = Table(
    "loans",
    loan_metadata,
    Column("loan_id", Integer, primary_key=True, autoincrement=True),
    Column("student_number", String(20), nullable=False, index=True),
    Column("loan_date", DateTime),
    Column("due_date", DateTime),
    Column("comments", Text),
)

loan_items = Table(
    "loan_items",
    loan_metadata,
    Column("item_id", Integer, primary_key=True, autoincrement=True),
    Column("loan_id", Integer, nullable=False),
    Column("asset_id", Integer),
)

SYSTEM_METADATA: dict[str, MetaData] = {
    "person": person_metadata,
    "hr": hr_metadata,
    "badge": badge_metadata,
    "key": key_metadata,
    "loan": loan_metadata,
}
