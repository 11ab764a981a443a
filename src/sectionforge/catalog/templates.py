"""
Built-in document templates.

Each template is the catalog for one industry report: twelve sections
covering executive, analysis, implementation, technical and financial
content.
"""

from sectionforge.models.base import SectionCategory, SectionPriority
from sectionforge.models.sections import DocumentTemplate, SectionDefinition

_H = SectionPriority.HIGH
_M = SectionPriority.MEDIUM
_L = SectionPriority.LOW


def _section(
    section_id: str,
    title: str,
    description: str,
    estimated_pages: int,
    priority: SectionPriority,
    category: SectionCategory,
) -> SectionDefinition:
    return SectionDefinition(
        id=section_id,
        title=title,
        description=description,
        estimated_pages=estimated_pages,
        priority=priority,
        category=category,
    )


HEALTHCARE_TEMPLATE = DocumentTemplate(
    id="healthcare",
    name="Healthcare & Medical",
    description="Patient management, compliance, and clinical workflow automation",
    sections=[
        _section("executive-summary", "Executive Summary",
                 "High-level overview and key recommendations", 2, _H, SectionCategory.EXECUTIVE),
        _section("patient-intake", "Patient Intake Automation",
                 "Digital registration and triage systems", 3, _H, SectionCategory.IMPLEMENTATION),
        _section("ehr-integration", "EHR Integration Strategy",
                 "Electronic health record system integration", 4, _H, SectionCategory.TECHNICAL),
        _section("compliance-framework", "HIPAA Compliance Framework",
                 "Privacy and security compliance measures", 3, _H, SectionCategory.ANALYSIS),
        _section("appointment-scheduling", "Automated Scheduling",
                 "Smart appointment booking and management", 2, _M, SectionCategory.IMPLEMENTATION),
        _section("billing-automation", "Billing & Claims Processing",
                 "Automated insurance and payment processing", 3, _M, SectionCategory.FINANCIAL),
        _section("clinical-workflows", "Clinical Workflow Optimization",
                 "Streamlined care delivery processes", 4, _M, SectionCategory.IMPLEMENTATION),
        _section("telehealth-platform", "Telehealth Integration",
                 "Remote consultation capabilities", 3, _M, SectionCategory.TECHNICAL),
        _section("data-analytics", "Healthcare Analytics Dashboard",
                 "Patient outcomes and operational metrics", 3, _M, SectionCategory.ANALYSIS),
        _section("staff-training", "Staff Training Program",
                 "Change management and user adoption", 2, _L, SectionCategory.IMPLEMENTATION),
        _section("roi-analysis", "ROI & Cost Analysis",
                 "Financial impact and cost savings projection", 3, _H, SectionCategory.FINANCIAL),
        _section("implementation-timeline", "Implementation Roadmap",
                 "Phased rollout plan and milestones", 2, _H, SectionCategory.IMPLEMENTATION),
    ],
)

FINANCE_TEMPLATE = DocumentTemplate(
    id="finance",
    name="Financial Services",
    description="Banking, investment, and financial process automation",
    sections=[
        _section("executive-summary", "Executive Summary",
                 "Strategic overview and recommendations", 2, _H, SectionCategory.EXECUTIVE),
        _section("kyc-automation", "KYC/AML Automation",
                 "Know Your Customer and Anti-Money Laundering", 4, _H, SectionCategory.IMPLEMENTATION),
        _section("fraud-detection", "AI Fraud Detection",
                 "Real-time transaction monitoring", 3, _H, SectionCategory.TECHNICAL),
        _section("regulatory-compliance", "Regulatory Compliance",
                 "SOX, PCI-DSS, and banking regulations", 4, _H, SectionCategory.ANALYSIS),
        _section("loan-processing", "Automated Loan Processing",
                 "Digital application and approval workflows", 3, _M, SectionCategory.IMPLEMENTATION),
        _section("trading-automation", "Trading System Automation",
                 "Algorithmic trading and risk management", 4, _M, SectionCategory.TECHNICAL),
        _section("customer-onboarding", "Digital Customer Onboarding",
                 "Streamlined account opening process", 2, _M, SectionCategory.IMPLEMENTATION),
        _section("risk-assessment", "Risk Assessment Framework",
                 "Credit scoring and risk modeling", 3, _M, SectionCategory.ANALYSIS),
        _section("reporting-automation", "Regulatory Reporting",
                 "Automated compliance reporting", 3, _M, SectionCategory.FINANCIAL),
        _section("cybersecurity", "Cybersecurity Framework",
                 "Financial data protection strategy", 4, _H, SectionCategory.TECHNICAL),
        _section("cost-benefit", "Cost-Benefit Analysis",
                 "Financial impact assessment", 3, _H, SectionCategory.FINANCIAL),
        _section("implementation-plan", "Implementation Strategy",
                 "Phased deployment approach", 2, _H, SectionCategory.IMPLEMENTATION),
    ],
)

MANUFACTURING_TEMPLATE = DocumentTemplate(
    id="manufacturing",
    name="Manufacturing & Industry",
    description="Production optimization and supply chain automation",
    sections=[
        _section("executive-summary", "Executive Summary",
                 "Strategic automation overview", 2, _H, SectionCategory.EXECUTIVE),
        _section("quality-control", "AI Quality Control",
                 "Automated inspection and defect detection", 4, _H, SectionCategory.TECHNICAL),
        _section("supply-chain", "Supply Chain Optimization",
                 "Inventory and logistics automation", 4, _H, SectionCategory.IMPLEMENTATION),
        _section("predictive-maintenance", "Predictive Maintenance",
                 "IoT-based equipment monitoring", 3, _H, SectionCategory.TECHNICAL),
        _section("production-planning", "Production Planning Automation",
                 "Demand forecasting and scheduling", 3, _M, SectionCategory.IMPLEMENTATION),
        _section("warehouse-automation", "Warehouse Management",
                 "Automated storage and retrieval", 3, _M, SectionCategory.IMPLEMENTATION),
        _section("safety-compliance", "Safety & Compliance",
                 "OSHA and industry safety standards", 3, _H, SectionCategory.ANALYSIS),
        _section("energy-optimization", "Energy Management",
                 "Smart energy consumption monitoring", 2, _M, SectionCategory.TECHNICAL),
        _section("workforce-management", "Workforce Optimization",
                 "Staff scheduling and productivity tracking", 2, _M, SectionCategory.IMPLEMENTATION),
        _section("sustainability", "Sustainability Initiatives",
                 "Environmental impact reduction", 3, _L, SectionCategory.ANALYSIS),
        _section("cost-analysis", "Cost Reduction Analysis",
                 "Operational efficiency savings", 3, _H, SectionCategory.FINANCIAL),
        _section("deployment-strategy", "Deployment Strategy",
                 "Phased implementation approach", 2, _H, SectionCategory.IMPLEMENTATION),
    ],
)

BUILTIN_TEMPLATES: tuple[DocumentTemplate, ...] = (
    HEALTHCARE_TEMPLATE,
    FINANCE_TEMPLATE,
    MANUFACTURING_TEMPLATE,
)
