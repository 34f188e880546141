"""
Database Schemas for the Team-Formation Platform

Each document model corresponds to a MongoDB collection. The collection name
is the lowercase class name (e.g., User -> "user"). The *In / *Update models
further down are request bodies; they only check shapes, and the domain
modules apply the business validation so that every field error is reported
together.
"""
from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field, HttpUrl

UserRole = Literal['user', 'admin', 'moderator', 'founder', 'professional', 'investor', 'student']
UserStatus = Literal['active', 'inactive', 'suspended']
SkillLevel = Literal['beginner', 'intermediate', 'advanced', 'expert']
ProjectStage = Literal['idea', 'prototype', 'mvp', 'growth', 'scaling']
ApplicationStatus = Literal['pending', 'accepted', 'rejected', 'withdrawn']
ContactStatus = Literal['pending', 'reviewed', 'responded', 'archived']
MessageType = Literal['text', 'file', 'image', 'system']
HackathonStatus = Literal['upcoming', 'ongoing', 'completed', 'cancelled']

# ------------------ Embedded ------------------

class Skill(BaseModel):
    name: str
    level: SkillLevel = 'intermediate'
    years: Optional[float] = Field(None, ge=0)

class SocialLinks(BaseModel):
    github: Optional[HttpUrl] = None
    linkedin: Optional[HttpUrl] = None
    portfolio: Optional[HttpUrl] = None

class Experience(BaseModel):
    title: str
    company: Optional[str] = None
    startDate: Optional[str] = None
    endDate: Optional[str] = None
    current: bool = False
    description: Optional[str] = None

class Education(BaseModel):
    school: str
    degree: Optional[str] = None
    field: Optional[str] = None
    startYear: Optional[int] = None
    endYear: Optional[int] = None

class TeamMember(BaseModel):
    userId: str
    name: str
    role: str
    avatar: Optional[str] = None
    email: Optional[str] = None
    joinedAt: Optional[datetime] = None

class OpenPosition(BaseModel):
    role: Optional[str] = None
    skills: List[str] = []
    isPaid: bool = False

class Reaction(BaseModel):
    userId: str
    emoji: str
    createdAt: Optional[datetime] = None

# ------------------ Core Collections ------------------

class User(BaseModel):
    id: Optional[str] = Field(None, description="Document id as string")
    name: str
    email: EmailStr
    avatar: Optional[str] = None
    bio: str = ''
    role: UserRole = 'user'
    status: UserStatus = 'active'
    skills: List[Skill] = []
    location: Optional[str] = None
    title: Optional[str] = None
    socialLinks: SocialLinks = SocialLinks()
    experiences: List[Experience] = []
    education: List[Education] = []
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

class Project(BaseModel):
    id: Optional[str] = None
    title: str
    description: str
    stage: ProjectStage = 'idea'
    industry: str
    requiredSkills: List[str] = []
    teamMembers: List[TeamMember] = []
    openPositions: List[OpenPosition] = []
    funding: str = 'Not Funded'
    applications: int = 0
    ownerId: str  # user id string
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

class Application(BaseModel):
    id: Optional[str] = None
    applicantId: str
    applicantName: str
    applicantEmail: str
    applicantAvatar: Optional[str] = None
    projectId: str
    projectName: str
    position: str
    skills: List[str] = []
    message: str = ''
    status: ApplicationStatus = 'pending'
    hasResume: bool = False
    resumeUrl: Optional[str] = None
    appliedDate: Optional[datetime] = None
    reviewedAt: Optional[datetime] = None
    reviewedBy: Optional[str] = None
    rejectionReason: Optional[str] = None

class Contact(BaseModel):
    id: Optional[str] = None
    name: str
    email: EmailStr
    message: str
    status: ContactStatus = 'pending'
    submittedAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

class Message(BaseModel):
    id: Optional[str] = None
    projectId: str
    senderId: str
    senderName: str
    content: str
    type: MessageType = 'text'
    replyTo: Optional[str] = None
    reactions: List[Reaction] = []
    isDeleted: bool = False
    deletedAt: Optional[datetime] = None

class Hackathon(BaseModel):
    id: Optional[str] = None
    title: str
    description: str
    startDate: datetime
    endDate: datetime
    prize: str = ''
    participants: List[str] = []
    status: HackathonStatus = 'upcoming'
    categories: List[str] = []
    maxParticipants: Optional[int] = None
    organizerId: str
    location: str = 'Online'
    registrationDeadline: Optional[datetime] = None

# ------------------ Request bodies ------------------

SkillIn = Union[str, Skill]

class RegisterIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    confirmPassword: Optional[str] = None
    role: Optional[UserRole] = None
    title: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    skills: List[SkillIn] = []
    socialLinks: Optional[SocialLinks] = None

class LoginIn(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    title: Optional[str] = None
    location: Optional[str] = None
    skills: Optional[List[SkillIn]] = None
    socialLinks: Optional[SocialLinks] = None

class ProfileUpdate(BaseModel):
    avatar: Optional[str] = None
    bio: Optional[str] = None
    role: Optional[UserRole] = None
    title: Optional[str] = None
    location: Optional[str] = None
    skills: Optional[List[SkillIn]] = None
    socialLinks: Optional[SocialLinks] = None
    experiences: Optional[List[Experience]] = None
    # older clients send "experience"
    experience: Optional[List[Experience]] = None
    education: Optional[List[Education]] = None

class PasswordChangeIn(BaseModel):
    currentPassword: str
    newPassword: str
    confirmPassword: str

class ProjectIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    stage: Optional[str] = None
    industry: Optional[str] = None
    requiredSkills: List[str] = []
    openPositions: List[OpenPosition] = []
    funding: Optional[str] = None

class ProjectUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    stage: Optional[str] = None
    industry: Optional[str] = None
    requiredSkills: Optional[List[str]] = None
    openPositions: Optional[List[OpenPosition]] = None
    funding: Optional[str] = None

class StageIn(BaseModel):
    stage: str

class MemberIn(BaseModel):
    userId: str
    role: str = 'Member'

class ApplicationIn(BaseModel):
    position: Optional[str] = None
    skills: List[str] = []
    message: str = ''
    resumeUrl: Optional[str] = None

class RejectIn(BaseModel):
    reason: Optional[str] = None

class ContactIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    message: Optional[str] = None

class ContactStatusIn(BaseModel):
    status: str

class MessageIn(BaseModel):
    content: Optional[str] = None
    type: str = 'text'
    replyTo: Optional[str] = None

class ReactionIn(BaseModel):
    emoji: str

class HackathonIn(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    prize: str = ''
    categories: List[str] = []
    maxParticipants: Optional[int] = Field(None, ge=1)
    location: str = 'Online'
    registrationDeadline: Optional[datetime] = None

class HackathonUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    prize: Optional[str] = None
    categories: Optional[List[str]] = None
    maxParticipants: Optional[int] = Field(None, ge=1)
    location: Optional[str] = None
    registrationDeadline: Optional[datetime] = None

class HackathonStatusIn(BaseModel):
    status: str
